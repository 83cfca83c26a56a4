"""
WorshipFlow Song Manager - Page Routes

Serves browser-facing HTML rendered with Jinja2.  The editor itself is a
separate single-page front end; the only server-rendered view is the
printable song sheet (lyrics and chords side by side).
"""

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse
from loguru import logger

from worshipflow.errors import NotFoundError
from worshipflow.services.songs import SongService

router = APIRouter(tags=["Pages"])


@router.get("/songs/{song_id}/print", response_class=HTMLResponse)
async def print_song(request: Request, song_id: str):
    """Printable sheet for one song; the browser's print dialog opens on load."""
    songs: SongService = request.app.state.song_service
    templates = request.app.state.templates

    try:
        song = await songs.get_song(song_id)
    except NotFoundError:
        logger.warning("⚠️ Print requested for unknown song id={}", song_id)
        return HTMLResponse("<h1>Song not found</h1>", status_code=404)

    context = {
        "request": request,
        "song": song,
        "page_title": f"{song.get('title', '')} - {song.get('artist', '')}",
    }
    return templates.TemplateResponse(request, "print.html", context)
