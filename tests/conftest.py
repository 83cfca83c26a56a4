"""
WorshipFlow Song Manager - Pytest Configuration & Shared Fixtures

Provides reusable fixtures for:
- A fresh document store per test (SQLite file under tmp_path)
- Song and tag services bound to that store
- A FastAPI TestClient wired to the same store
- A Gemini transcriber whose HTTP calls go to an in-process mock transport
- Sample song payloads
"""

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, List

import httpx
import pytest
from fastapi.testclient import TestClient

from worshipflow.database import DocumentStore
from worshipflow.main import create_app
from worshipflow.services.songs import SongService
from worshipflow.services.tags import TagService
from worshipflow.services.transcription import GeminiTranscriber


def run(coro):
    """Drive a coroutine to completion from a plain synchronous test."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Store / service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path: Path) -> DocumentStore:
    """Provide an initialized, empty document store for each test."""
    s = DocumentStore(tmp_path / "worshipflow.db")
    s.init()
    return s


@pytest.fixture
def song_service(store: DocumentStore) -> SongService:
    return SongService(store)


@pytest.fixture
def tag_service(store: DocumentStore) -> TagService:
    return TagService(store)


@pytest.fixture
def make_tag(store: DocumentStore) -> Callable[..., str]:
    """Factory fixture: insert a tag document directly and return its id."""

    def _factory(name: str, color: str = "bg-gray-100 text-gray-800") -> str:
        return run(store.add_document("tags", {"name": name, "color": color}))

    return _factory


@pytest.fixture
def make_song(song_service: SongService, make_tag) -> Callable[..., str]:
    """
    Factory fixture: create a song through the service and return its id.

    When no tag ids are given a throwaway tag is created so the song passes
    the "at least one tag" rule.
    """

    def _factory(
        title: str = "Amazing Grace",
        artist: str = "Traditional",
        lyrics: str = "Amazing grace, how sweet the sound",
        chords: str = "",
        tag_ids: List[str] | None = None,
        video_url: str = "",
    ) -> str:
        if tag_ids is None:
            tag_ids = [make_tag("Hymn")]
        return run(
            song_service.create_song(
                title=title,
                artist=artist,
                lyrics=lyrics,
                chords=chords,
                tag_ids=tag_ids,
                video_url=video_url,
            )
        )

    return _factory


# ---------------------------------------------------------------------------
# Transcription fixtures
# ---------------------------------------------------------------------------


def gemini_response(text: str) -> Dict[str, Any]:
    """Return a minimal generateContent response carrying *text*."""
    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": [{"text": text}]},
                "finishReason": "STOP",
            }
        ]
    }


@pytest.fixture
def gemini_calls() -> List[httpx.Request]:
    """Requests captured by the mock Gemini transport."""
    return []


@pytest.fixture
def transcriber(gemini_calls) -> GeminiTranscriber:
    """A transcriber whose API answers every call with a fixed sheet."""

    def handler(request: httpx.Request) -> httpx.Response:
        gemini_calls.append(request)
        return httpx.Response(
            200, json=gemini_response("**Verse 1:**\nG  C  D\n\nChorus:\n(3x)")
        )

    return GeminiTranscriber(
        api_key="test-key",
        model="gemini-2.5-flash",
        api_url="https://gemini.test/v1beta",
        transport=httpx.MockTransport(handler),
    )


# ---------------------------------------------------------------------------
# HTTP client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client(store: DocumentStore, transcriber: GeminiTranscriber):
    """TestClient for an app backed by the per-test store."""
    app = create_app(store=store, transcriber=transcriber)
    with TestClient(app) as c:
        yield c


@pytest.fixture
def unconfigured_client():
    """TestClient for an app started without a document store or API key."""
    app = create_app(store=None, transcriber=GeminiTranscriber(api_key=""))
    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Sample payloads
# ---------------------------------------------------------------------------


@pytest.fixture
def song_payload() -> Callable[..., Dict[str, Any]]:
    """Factory for a valid POST /api/songs body."""

    def _factory(tags: List[str], **overrides: Any) -> Dict[str, Any]:
        body = {
            "title": "How Great Thou Art",
            "artist": "Carl Boberg",
            "lyrics": "O Lord my God, when I in awesome wonder",
            "chords": "C F C G",
            "tags": tags,
            "video_url": "https://youtu.be/example",
        }
        body.update(overrides)
        return body

    return _factory
