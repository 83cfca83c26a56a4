"""
WorshipFlow Song Manager - JSON API Routes

Provides all REST API endpoints for:
- Songs CRUD (list/search/filter, get, create, update, delete, bulk delete)
- Tags (list with self-repair, create, delete)
- Sheet transcription (photo of a lyric/chord sheet -> plain text)
- Health check

Every error leaves this module as a WorshipFlowError and is rendered as
``{"error": message}`` by the handlers registered in ``worshipflow.main``.
"""

import time
from contextlib import contextmanager
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel

from worshipflow.config import APP_VERSION
from worshipflow.errors import ExternalServiceError, WorshipFlowError
from worshipflow.services.songs import SongService
from worshipflow.services.tags import TagService
from worshipflow.services.transcription import GeminiTranscriber, transcribe_sheet

router = APIRouter(prefix="/api", tags=["API"])

# Track startup time for health check
_START_TIME = time.time()


# ---------------------------------------------------------------------------
# Pydantic models
#
# Every field is optional: required-field rules belong to the services so
# that all missing fields can be reported in one message.
# ---------------------------------------------------------------------------
class SongPayload(BaseModel):
    title: Optional[str] = None
    artist: Optional[str] = None
    lyrics: Optional[str] = None
    chords: Optional[str] = None
    tags: Optional[List[str]] = None
    video_url: Optional[str] = None


class TagPayload(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None


class BulkDeleteRequest(BaseModel):
    ids: List[str] = []


class TranscriptionRequest(BaseModel):
    base64Data: Optional[str] = None
    mimeType: Optional[str] = None
    type: Optional[str] = None


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
def get_song_service(request: Request) -> SongService:
    return request.app.state.song_service


def get_tag_service(request: Request) -> TagService:
    return request.app.state.tag_service


def get_transcriber(request: Request) -> GeminiTranscriber:
    return request.app.state.transcriber


@contextmanager
def _failure(message: str):
    """Re-raise unexpected errors (store I/O etc.) as ExternalServiceError(message)."""
    try:
        yield
    except WorshipFlowError:
        raise
    except Exception as e:
        logger.exception(f"❌ {message}: {e}")
        raise ExternalServiceError(message) from e


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint for the service."""
    store = request.app.state.store
    transcriber = get_transcriber(request)

    return {
        "status": "ok" if store is not None else "degraded",
        "store_configured": store is not None,
        "transcription_configured": transcriber.is_configured,
        "uptime_seconds": round(time.time() - _START_TIME, 2),
        "version": APP_VERSION,
    }


# ---------------------------------------------------------------------------
# Songs
# ---------------------------------------------------------------------------
@router.get("/songs")
async def api_list_songs(
    search: Optional[str] = Query(None),
    tagId: Optional[str] = Query(None),
    songs: SongService = Depends(get_song_service),
):
    """List songs, optionally filtered by a search term and/or a tag id."""
    with _failure("Failed to fetch songs"):
        return await songs.list_songs(search=search, tag_id=tagId)


@router.post("/songs/bulk-delete")
async def api_bulk_delete_songs(
    body: BulkDeleteRequest,
    songs: SongService = Depends(get_song_service),
):
    """Delete every song in ``ids``.  Unknown ids are ignored."""
    with _failure("Failed to delete songs"):
        deleted = await songs.delete_songs(body.ids)
    return {"success": True, "deleted": deleted}


@router.get("/songs/{song_id}")
async def api_get_song(song_id: str, songs: SongService = Depends(get_song_service)):
    """Get a single song by ID, with its tags resolved."""
    with _failure("Failed to fetch song"):
        return await songs.get_song(song_id)


@router.post("/songs")
async def api_create_song(
    body: SongPayload,
    songs: SongService = Depends(get_song_service),
):
    """Create a song.  Title, artist, lyrics and at least one tag are required."""
    with _failure("Failed to create song"):
        song_id = await songs.create_song(
            title=body.title,
            artist=body.artist,
            lyrics=body.lyrics,
            chords=body.chords,
            tag_ids=body.tags,
            video_url=body.video_url,
        )
    return JSONResponse(status_code=201, content={"id": song_id})


@router.put("/songs/{song_id}")
async def api_update_song(
    song_id: str,
    body: SongPayload,
    songs: SongService = Depends(get_song_service),
):
    """Overwrite a song.  Fields left out of the body are cleared."""
    with _failure("Failed to update song"):
        await songs.update_song(
            song_id,
            title=body.title,
            artist=body.artist,
            lyrics=body.lyrics,
            chords=body.chords,
            tag_ids=body.tags,
            video_url=body.video_url,
        )
    return {"success": True}


@router.delete("/songs/{song_id}")
async def api_delete_song(song_id: str, songs: SongService = Depends(get_song_service)):
    """Delete a song.  Succeeds even if the song does not exist."""
    with _failure("Failed to delete song"):
        await songs.delete_song(song_id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------
@router.get("/tags")
async def api_list_tags(tags: TagService = Depends(get_tag_service)):
    """List tags by name, after removing duplicates and seeding default tags."""
    with _failure("Failed to fetch tags"):
        return await tags.list_tags()


@router.post("/tags")
async def api_create_tag(body: TagPayload, tags: TagService = Depends(get_tag_service)):
    """Create a tag.  Name uniqueness is restored by the next listing."""
    with _failure("Failed to create tag"):
        tag_id = await tags.create_tag(body.name, body.color)
    return JSONResponse(
        status_code=201,
        content={"id": tag_id, "name": body.name, "color": body.color},
    )


@router.delete("/tags/{tag_id}")
async def api_delete_tag(tag_id: str, tags: TagService = Depends(get_tag_service)):
    """Delete a tag.  Songs keep the id; it no longer resolves."""
    with _failure("Failed to delete tag"):
        await tags.delete_tag(tag_id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Transcription
# ---------------------------------------------------------------------------
@router.post("/ocr")
async def api_transcribe(
    body: TranscriptionRequest,
    transcriber: GeminiTranscriber = Depends(get_transcriber),
):
    """Transcribe a base64-encoded photo of a lyric or chord sheet."""
    with _failure("Failed to extract text from image"):
        text = await transcribe_sheet(
            transcriber, body.base64Data, body.mimeType, body.type
        )
    return {"text": text}
