"""
Editing sessions: one uploaded image, its edit history and request status.

A session serialises every history mutation behind its own lock. The model
call runs outside the lock, but while it is pending the session refuses
loads, resets, undo/redo and further edits, so the result is always appended
on top of the snapshot it was produced from. A failed call leaves the history
exactly as it was.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import mimetypes
from threading import Lock
from typing import Dict, Optional, Union
import uuid

from . import pipeline
from .chroma_key import ChromaKeyConfig
from .exceptions import ImageEditError, InvalidStateError, InvalidUploadError
from .history import EditHistory, Snapshot
from .model_client import ImageEditor, get_image_editor
from .prompts import EditKind

logger = logging.getLogger(__name__)

DOWNLOAD_BASENAME = "edited-image"
# mimetypes lacks some of these on older platforms (image/webp in particular).
DOWNLOAD_EXTENSIONS = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/heic": ".heic",
    "image/heif": ".heif",
}


@dataclass(frozen=True)
class SessionState:
    session_id: str
    filename: Optional[str]
    length: int
    current_index: int
    mime_type: Optional[str]
    can_undo: bool
    can_redo: bool
    can_download: bool
    is_loading: bool
    error: Optional[str]


class EditSession:
    def __init__(
        self,
        editor: Optional[ImageEditor] = None,
        key: Optional[ChromaKeyConfig] = None,
        workers: int = 1,
        max_upload_bytes: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self.history = EditHistory()
        self.key = key or ChromaKeyConfig.magenta()
        self.workers = workers
        self.max_upload_bytes = max_upload_bytes
        self.filename: Optional[str] = None
        self.error: Optional[str] = None
        self._editor = editor
        self._pending = False
        self._lock = Lock()

    @property
    def is_loading(self) -> bool:
        return self._pending

    @property
    def can_download(self) -> bool:
        # The untouched upload is not offered for download.
        _, index = self.history.view()
        return index > 0

    def current(self) -> Optional[Snapshot]:
        return self.history.current()

    def _ensure_idle(self) -> None:
        if self._pending:
            raise InvalidStateError("An edit is already in progress.")

    def load_upload(self, data: bytes, mime_type: str, filename: Optional[str] = None) -> None:
        """Replace the whole history with a freshly uploaded image."""
        if not mime_type or not mime_type.startswith("image/"):
            raise InvalidUploadError("Please upload a valid image file (PNG, JPG, etc.).")
        if not data:
            raise InvalidUploadError("Could not read the uploaded file.")
        if self.max_upload_bytes is not None and len(data) > self.max_upload_bytes:
            raise InvalidUploadError(
                f"Image is too large ({len(data)} bytes, limit {self.max_upload_bytes})."
            )
        with self._lock:
            self._ensure_idle()
            self.history.load(Snapshot(data=data, mime_type=mime_type))
            self.filename = filename
            self.error = None
        logger.info(
            "session %s: loaded %s (%s, %d bytes)", self.session_id, filename or "<upload>", mime_type, len(data)
        )

    def apply_edit(self, kind: Union[EditKind, str]) -> Snapshot:
        """
        Run one model edit on the current snapshot and append the result.

        Raises:
            InvalidStateError: no image is loaded, or an edit is already pending.
            ExternalEditFailure: the model call failed; history is unchanged.
            DecodeError: a background-removal result was not a decodable image.
        """
        kind = EditKind(kind)
        with self._lock:
            self._ensure_idle()
            base = self.history.current()
            if base is None:
                self.error = "Please upload an image first."
                raise InvalidStateError(self.error)
            self._pending = True
            self.error = None

        logger.info("session %s: starting %s edit", self.session_id, kind.value)
        try:
            editor = self._editor or get_image_editor()
            result = pipeline.run_edit(editor, base, kind, key=self.key, workers=self.workers)
            with self._lock:
                self.history.append(result)
        except ImageEditError as exc:
            self.error = f"Edit failed: {exc}"
            logger.warning("session %s: %s edit failed: %s", self.session_id, kind.value, exc)
            raise
        finally:
            with self._lock:
                self._pending = False

        logger.info(
            "session %s: %s edit stored at index %d",
            self.session_id,
            kind.value,
            self.history.current_index,
        )
        return result

    def undo(self) -> bool:
        with self._lock:
            self._ensure_idle()
            return self.history.undo()

    def redo(self) -> bool:
        with self._lock:
            self._ensure_idle()
            return self.history.redo()

    def reset(self) -> None:
        with self._lock:
            self._ensure_idle()
            self.history.reset()
            self.filename = None
            self.error = None
        logger.info("session %s: reset", self.session_id)

    def download_name(self) -> str:
        current = self.history.current()
        extension = None
        if current is not None:
            mime_type = current.mime_type.lower()
            extension = DOWNLOAD_EXTENSIONS.get(mime_type) or mimetypes.guess_extension(mime_type)
        return DOWNLOAD_BASENAME + (extension or ".png")

    def state(self) -> SessionState:
        with self._lock:
            snapshots, index = self.history.view()
            current = snapshots[index] if index >= 0 else None
            return SessionState(
                session_id=self.session_id,
                filename=self.filename,
                length=len(snapshots),
                current_index=index,
                mime_type=current.mime_type if current is not None else None,
                can_undo=index > 0,
                can_redo=index < len(snapshots) - 1,
                can_download=index > 0,
                is_loading=self._pending,
                error=self.error,
            )


class SessionRegistry:
    """Thread-safe in-memory store of editing sessions, keyed by id."""

    def __init__(
        self,
        editor: Optional[ImageEditor] = None,
        key: Optional[ChromaKeyConfig] = None,
        workers: int = 1,
        max_upload_bytes: Optional[int] = None,
    ) -> None:
        self._editor = editor
        self._key = key
        self._workers = workers
        self._max_upload_bytes = max_upload_bytes
        self._sessions: Dict[str, EditSession] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self) -> EditSession:
        session = EditSession(
            editor=self._editor,
            key=self._key,
            workers=self._workers,
            max_upload_bytes=self._max_upload_bytes,
        )
        with self._lock:
            self._sessions[session.session_id] = session
        logger.debug("registry: created session %s", session.session_id)
        return session

    def get(self, session_id: str) -> EditSession:
        """Raises KeyError for unknown ids."""
        with self._lock:
            return self._sessions[session_id]

    def delete(self, session_id: str) -> None:
        """Raises KeyError for unknown ids."""
        with self._lock:
            del self._sessions[session_id]
        logger.debug("registry: deleted session %s", session_id)
