"""
High-level edit pipeline.

`run_edit` is the main entry point used by editing sessions and the local
test script. It keeps orchestration simple:
snapshot in -> model edit -> optional chroma key -> snapshot out.
"""

from __future__ import annotations

import logging
from typing import Optional

from .chroma_key import ChromaKeyConfig
from .compositor import chroma_key_snapshot
from .exceptions import ExternalEditFailure, ImageEditError
from .history import Snapshot
from .model_client import ImageEditor
from .prompts import EditKind

logger = logging.getLogger(__name__)


def postprocess_edit(
    raw: Snapshot,
    kind: EditKind,
    key: Optional[ChromaKeyConfig] = None,
    workers: int = 1,
) -> Snapshot:
    """Chroma-key background-removal results; pass every other kind through untouched."""
    if not kind.requires_chroma_key:
        return raw
    key = key or ChromaKeyConfig.from_settings()
    keyed = chroma_key_snapshot(raw, key, workers=workers)
    logger.info(
        "Keyed %s result: %s %d bytes -> %s %d bytes",
        kind.value,
        raw.mime_type,
        raw.size,
        keyed.mime_type,
        keyed.size,
    )
    return keyed


def run_edit(
    editor: ImageEditor,
    snapshot: Snapshot,
    kind: EditKind,
    key: Optional[ChromaKeyConfig] = None,
    workers: int = 1,
) -> Snapshot:
    """
    Full pipeline from the current snapshot to the snapshot to append.

    Raises:
        ExternalEditFailure: when the model call fails or returns no image.
        DecodeError: when a background-removal result cannot be decoded.
    """
    try:
        raw = editor.edit(snapshot, kind.prompt)
    except ImageEditError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.exception("Image editor raised unexpectedly: %s", exc)
        raise ExternalEditFailure(str(exc) or type(exc).__name__) from exc
    if raw is None or not raw.data:
        raise ExternalEditFailure("AI did not return a valid image. Please try again.")
    return postprocess_edit(raw, kind, key=key, workers=workers)
