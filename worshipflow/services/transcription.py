"""
WorshipFlow Song Manager - Sheet Transcription

Turns a photographed lyric or chord sheet into plain text using Google's
Gemini multimodal model (``generateContent`` REST endpoint, called with
httpx).  The model is told to copy the sheet verbatim: section labels,
annotations, line order and blank lines between sections are preserved,
nothing is summarized or invented, and no Markdown is produced.

There is no retry and no fallback.  Any failure of the external call is
reported as ExternalServiceError.
"""

from typing import Any, Dict, Optional

import httpx
from loguru import logger

from worshipflow.config import (
    GEMINI_API_KEY,
    GEMINI_API_URL,
    GEMINI_MODEL,
    TRANSCRIPTION_TIMEOUT,
)
from worshipflow.errors import ConfigurationError, ExternalServiceError, ValidationError

TRANSCRIPTION_PROMPT = """\
You are a precise music document transcriber. Transcribe ALL visible text from this image EXACTLY as it appears, preserving:
- Every section label (e.g. "Verse:", "Chorus:", "Bridge:", "Pre Chorus:", etc.)
- Every tag or annotation (e.g. "//JOYFUL", "(3x)", "(Jesus...)")
- Every song title or header at the top
- Every chord or lyric line, in the correct order
- Empty lines between sections for spacing

Rules:
- Do NOT skip any line of text you can see.
- Do NOT add, invent, or summarize anything.
- Do NOT use Markdown formatting (no **, no ##, no bullets).
- Output ONLY the plain text transcription, nothing else."""

FAILURE_MESSAGE = "Failed to extract text from image"


def build_request_body(base64_data: str, mime_type: str) -> Dict[str, Any]:
    """Build a ``generateContent`` body: the image followed by the instructions."""
    return {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {"inline_data": {"mime_type": mime_type, "data": base64_data}},
                    {"text": TRANSCRIPTION_PROMPT},
                ],
            }
        ]
    }


def extract_text(payload: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate in a Gemini response."""
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


def strip_markdown(text: str) -> str:
    """Remove bold markers the model sometimes adds despite the instructions."""
    return text.replace("**", "")


class GeminiTranscriber:
    """Thin async client for one image-to-text call against Gemini."""

    def __init__(
        self,
        api_key: str = GEMINI_API_KEY,
        model: str = GEMINI_MODEL,
        api_url: str = GEMINI_API_URL,
        timeout: float = TRANSCRIPTION_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.api_url}/models/{self.model}:generateContent"

    async def transcribe(self, base64_data: str, mime_type: str) -> str:
        """
        Send the image to Gemini and return its plain-text transcription.

        Raises ConfigurationError when no API key is set and
        ExternalServiceError on any transport, HTTP or response-shape error.
        """
        if not self.is_configured:
            raise ConfigurationError("Transcription service not configured")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.post(
                    self.endpoint,
                    headers={"x-goog-api-key": self.api_key},
                    json=build_request_body(base64_data, mime_type),
                )
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "❌ Gemini returned HTTP {}: {}",
                e.response.status_code,
                e.response.text[:500],
            )
            raise ExternalServiceError(FAILURE_MESSAGE) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("❌ Gemini request failed: {}", e)
            raise ExternalServiceError(FAILURE_MESSAGE) from e

        if not isinstance(payload, dict):
            raise ExternalServiceError(FAILURE_MESSAGE)

        text = extract_text(payload)
        logger.info("📷 Transcribed image ({} chars)", len(text))
        return text


async def transcribe_sheet(
    transcriber: GeminiTranscriber,
    base64_data: Optional[str],
    mime_type: Optional[str],
    kind: Optional[str],
) -> str:
    """
    Validate an upload and transcribe it.

    *kind* says which editor field ("lyrics" or "chords") the text is for.
    All three inputs are required; the text comes back with Markdown bold
    markers stripped.
    """
    if not base64_data or not mime_type or not kind:
        raise ValidationError("Missing required fields")

    logger.debug("📷 Transcribing {} image ({})", kind, mime_type)
    text = await transcriber.transcribe(base64_data, mime_type)
    return strip_markdown(text)
