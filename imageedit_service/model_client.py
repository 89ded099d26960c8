"""
Gemini image-editing client.

The loader:
 - builds a `google-genai` client from `GEMINI_API_KEY`,
 - keeps a single shared instance for the process,
 - exposes `get_image_editor()` for session callers.

Every failure on the model side surfaces as `ExternalEditFailure`; callers
never receive a partial or placeholder image.
"""

from __future__ import annotations

import base64
import logging
from threading import Lock
from typing import Any, Optional, Protocol

from google import genai
from google.genai import types

from . import config
from .exceptions import ExternalEditFailure
from .history import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_RESULT_MIME_TYPE = "image/png"

_EDITOR = None
_LOCK = Lock()


class ImageEditor(Protocol):
    def edit(self, snapshot: Snapshot, instruction: str) -> Snapshot:
        ...


def _extract_image(response: Any) -> Snapshot:
    """Return the first inline image part of a generate_content response."""
    candidates = getattr(response, "candidates", None) or []
    parts = []
    if candidates:
        content = getattr(candidates[0], "content", None)
        parts = getattr(content, "parts", None) or []

    for part in parts:
        inline = getattr(part, "inline_data", None)
        if inline is None or not inline.data:
            continue
        data = inline.data
        if isinstance(data, str):
            # Some transports hand back base64 text instead of raw bytes.
            data = base64.b64decode(data)
        return Snapshot(data=bytes(data), mime_type=inline.mime_type or DEFAULT_RESULT_MIME_TYPE)

    logger.error("Model response did not contain an image part: %r", response)
    raise ExternalEditFailure("AI did not return a valid image. Please try again.")


class GeminiImageEditor:
    """Sends one image plus an instruction to Gemini and returns the edited image."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-2.5-flash-image",
        timeout_seconds: int = 60,
        client: Optional[Any] = None,
    ) -> None:
        self.model = model
        if client is None:
            client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=timeout_seconds * 1000),
            )
        self._client = client

    def edit(self, snapshot: Snapshot, instruction: str) -> Snapshot:
        logger.info(
            "Requesting edit from %s (input %s, %d bytes)", self.model, snapshot.mime_type, snapshot.size
        )
        try:
            response = self._client.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_bytes(data=snapshot.data, mime_type=snapshot.mime_type),
                    instruction,
                ],
                config=types.GenerateContentConfig(response_modalities=["IMAGE"]),
            )
        except Exception as exc:  # noqa: BLE001
            logger.exception("Gemini edit call failed: %s", exc)
            raise ExternalEditFailure(str(exc) or type(exc).__name__) from exc
        return _extract_image(response)


def get_image_editor() -> GeminiImageEditor:
    """
    Return the process-wide Gemini editor, building it on first use.

    Raises:
        ExternalEditFailure: when no API key is configured.
    """
    global _EDITOR
    if _EDITOR is not None:
        return _EDITOR

    with _LOCK:
        if _EDITOR is None:
            settings = config.get_settings()
            if not settings.gemini_api_key:
                raise ExternalEditFailure("GEMINI_API_KEY is not configured")
            _EDITOR = GeminiImageEditor(
                api_key=settings.gemini_api_key,
                model=settings.gemini_model,
                timeout_seconds=settings.request_timeout_seconds,
            )
            logger.info("Gemini editor ready (model=%s)", settings.gemini_model)
    return _EDITOR
