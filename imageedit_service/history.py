"""
Linear edit history: immutable snapshots plus a cursor.

Each successful edit appends a new snapshot. Undo and redo only move the
cursor. Appending while the cursor is behind the tail discards the redo tail
for good; there is no branching.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
import logging
from threading import Lock
from typing import Optional, Tuple

from .exceptions import InvalidStateError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """One encoded image version with its declared MIME type."""

    data: bytes = field(repr=False)
    mime_type: str = "image/png"

    @property
    def size(self) -> int:
        return len(self.data)

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"

    @classmethod
    def from_data_url(cls, data_url: str) -> "Snapshot":
        """Parse a `data:<mime>;base64,<payload>` URL."""
        header, sep, payload = data_url.partition(",")
        if not sep or not header.startswith("data:") or not header.endswith(";base64"):
            raise ValueError("Expected a base64 data URL")
        mime_type = header[len("data:") : -len(";base64")] or "image/png"
        try:
            data = base64.b64decode(payload, validate=True)
        except binascii.Error as exc:
            raise ValueError("Data URL payload is not valid base64") from exc
        return cls(data=data, mime_type=mime_type)


class EditHistory:
    """
    Ordered snapshots (index 0 = original upload) and a cursor.

    Invariant: -1 <= current_index < len(self); -1 only when empty. The
    sequence and the cursor live in one `(snapshots, index)` tuple that is
    replaced by a single assignment under the lock, so every read sees a
    whole state. Use `view()` when both halves are needed together.
    """

    def __init__(self) -> None:
        self._state: Tuple[Tuple[Snapshot, ...], int] = ((), -1)
        self._lock = Lock()

    def __len__(self) -> int:
        return len(self._state[0])

    def view(self) -> Tuple[Tuple[Snapshot, ...], int]:
        """Return a consistent `(snapshots, current_index)` pair."""
        return self._state

    @property
    def snapshots(self) -> Tuple[Snapshot, ...]:
        return self._state[0]

    @property
    def current_index(self) -> int:
        return self._state[1]

    @property
    def can_undo(self) -> bool:
        return self._state[1] > 0

    @property
    def can_redo(self) -> bool:
        snapshots, index = self._state
        return index < len(snapshots) - 1

    def current(self) -> Optional[Snapshot]:
        snapshots, index = self._state
        if index < 0:
            return None
        return snapshots[index]

    def reset(self) -> None:
        with self._lock:
            self._state = ((), -1)
        logger.debug("history: reset")

    def load(self, snapshot: Snapshot) -> None:
        """Start over from a freshly uploaded image."""
        with self._lock:
            self._state = ((snapshot,), 0)
        logger.debug("history: loaded %s (%d bytes)", snapshot.mime_type, snapshot.size)

    def append(self, snapshot: Snapshot) -> None:
        """Drop everything after the cursor, then push `snapshot` as the new tip."""
        with self._lock:
            snapshots, index = self._state
            if index < 0:
                raise InvalidStateError("No image loaded; nothing to apply an edit to")
            kept = snapshots[: index + 1] + (snapshot,)
            self._state = (kept, len(kept) - 1)
        discarded = len(snapshots) - (index + 1)
        if discarded:
            logger.debug("history: discarded %d redo snapshot(s)", discarded)
        logger.debug("history: appended, cursor=%d length=%d", len(kept) - 1, len(kept))

    def undo(self) -> bool:
        """Step back one version. Returns False (no-op) at the original upload."""
        with self._lock:
            snapshots, index = self._state
            if index <= 0:
                return False
            self._state = (snapshots, index - 1)
            return True

    def redo(self) -> bool:
        """Step forward one version. Returns False (no-op) at the tip."""
        with self._lock:
            snapshots, index = self._state
            if index >= len(snapshots) - 1:
                return False
            self._state = (snapshots, index + 1)
            return True
