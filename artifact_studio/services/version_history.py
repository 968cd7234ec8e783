"""
Version History Controller.

Keeps the ordered sequence of persisted snapshots of one document and a
cursor into it, and is the only component that writes to the store.

Modes:
    live      cursor == len - 1   edits append new versions
    browsing  cursor <  len - 1   a past snapshot is displayed read-only

A commit while browsing turns the cursor into a branch point: every version
after it is deleted, then the new snapshot is appended and the controller is
live again.

Persistence failures never raise out of ``commit``: the failure is logged,
reported through ``on_error`` and the snapshot is kept as ``unsaved`` so
the next commit (or ``retry``) carries current state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from artifact_studio.core.exceptions import PersistenceError, ValidationError
from artifact_studio.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

DIRECTIONS = ("prev", "next")


class VersionHistory:
    def __init__(
        self,
        document_id: str,
        store: DocumentStore,
        *,
        on_error: Callable[[PersistenceError], None] | None = None,
    ):
        self.document_id = document_id
        self._store = store
        self._on_error = on_error
        self._versions: list[str] = []
        self.cursor = -1
        self.unsaved: str | None = None

    # ── State ────────────────────────────────────────────────────────────

    def load(self) -> list[str]:
        """Read the stored snapshots and move the cursor to the latest."""
        self._versions = self._store.load_versions(self.document_id)
        self.cursor = len(self._versions) - 1
        return list(self._versions)

    @property
    def versions(self) -> tuple[str, ...]:
        return tuple(self._versions)

    def __len__(self) -> int:
        return len(self._versions)

    @property
    def is_current_version(self) -> bool:
        """True when the cursor is on the latest version (or history is empty)."""
        return self.cursor == len(self._versions) - 1

    @property
    def is_browsing(self) -> bool:
        return not self.is_current_version

    @property
    def current_snapshot(self) -> str | None:
        if self.cursor < 0:
            return None
        return self._versions[self.cursor]

    # ── Navigation ───────────────────────────────────────────────────────

    def prev(self) -> str | None:
        """Step back one version. Returns the snapshot, or None at the start."""
        if self.cursor <= 0:
            return None
        self.cursor -= 1
        return self._versions[self.cursor]

    def next(self) -> str | None:
        """Step forward one version. Returns the snapshot, or None at the end."""
        if self.cursor >= len(self._versions) - 1:
            return None
        self.cursor += 1
        return self._versions[self.cursor]

    def go(self, direction: str) -> str | None:
        if direction == "prev":
            return self.prev()
        if direction == "next":
            return self.next()
        raise ValidationError(
            f"Unknown version direction: {direction!r}",
            details={"direction": f"must be one of {list(DIRECTIONS)}"},
        )

    def to_latest(self) -> str | None:
        self.cursor = len(self._versions) - 1
        return self.current_snapshot

    # ── Writes ───────────────────────────────────────────────────────────

    def commit(self, raw: str, *, debounce: bool = False) -> bool:
        """Persist ``raw`` as a new version. Returns False if the store failed."""
        try:
            if self.is_browsing:
                self._store.delete_versions_after(self.document_id, self.cursor)
                del self._versions[self.cursor + 1:]
                logger.info("Branched document %s at version %d",
                            self.document_id, self.cursor,
                            extra={"document_id": self.document_id})
            self._store.save(self.document_id, raw, debounce=debounce)
        except PersistenceError as exc:
            self.unsaved = raw
            logger.warning("Save failed for document %s: %s", self.document_id, exc,
                           extra={"document_id": self.document_id})
            if self._on_error is not None:
                self._on_error(exc)
            return False

        self._versions.append(raw)
        self.cursor = len(self._versions) - 1
        self.unsaved = None
        return True

    def retry(self) -> bool:
        """Re-attempt the last failed save, if any."""
        if self.unsaved is None:
            return False
        return self.commit(self.unsaved)
