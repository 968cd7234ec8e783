"""
Reconciliation Engine.

Owns the canonical in-memory content of one open document and decides, for
every incoming event, what that content becomes:

    apply_external(raw)       generation payloads (often truncated JSON)
    apply_local_edit(fn)      human edits and accepted suggestions
    load_snapshot(raw)        version-history navigation

Guard: a local edit arms a single-shot guard. The next external payload is
ignored (it reflects the document before the edit, typically the echo of
our own save) and the guard disarms. The payload after that applies
normally. The guard is a flag, not a queue: several edits in a row still
swallow exactly one payload.

Persistence is decoupled from reconciliation: the new canonical value is
computed and stored first, then ``on_commit(content, debounce)`` is invoked.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from artifact_studio.services.content_schema import (
    DocumentKind,
    coerce_kind,
    empty_content,
    has_content,
    parse_content,
)

logger = logging.getLogger(__name__)


class Origin(str, Enum):
    EXTERNAL = "external"
    LOCAL = "local"


class IngestOutcome(str, Enum):
    APPLIED = "applied"
    GUARDED = "guarded"          # dropped by the post-edit guard
    UNPARSEABLE = "unparseable"  # incomplete or malformed; canonical unchanged


Mutator = Callable[[dict], "dict | None"]
CommitHook = Callable[[dict, bool], object]


class ReconciliationEngine:
    """Single-writer state machine over one document's canonical content.

    Attributes:
        canonical: Current authoritative content. Treated as immutable:
            every change replaces it with a new dict.
        origin: Which actor produced the last accepted mutation.
        has_loaded_once: True once any non-empty structure has been seen.
        revision: Monotonic counter bumped on every replacement.
    """

    def __init__(self, kind: str | DocumentKind, *, on_commit: CommitHook | None = None):
        self.kind = coerce_kind(kind)
        self.canonical: dict = empty_content(self.kind)
        self.origin = Origin.EXTERNAL
        self.has_loaded_once = False
        self.revision = 0
        self._guarded = False
        self._on_commit = on_commit

    @property
    def guarded(self) -> bool:
        return self._guarded

    # ── External payloads ────────────────────────────────────────────────

    def apply_external(self, raw: str | None) -> IngestOutcome:
        if self._guarded:
            self._guarded = False
            logger.debug("Ignored external %s payload after local edit (revision=%d)",
                         self.kind.value, self.revision)
            return IngestOutcome.GUARDED

        parsed = parse_content(self.kind, raw)
        if parsed is None:
            return IngestOutcome.UNPARSEABLE

        self._replace(parsed, Origin.EXTERNAL)
        return IngestOutcome.APPLIED

    def load_snapshot(self, raw: str) -> bool:
        """Replace canonical with a stored snapshot, bypassing the guard."""
        self._guarded = False
        parsed = parse_content(self.kind, raw)
        if parsed is None:
            logger.warning("Stored %s snapshot could not be parsed; keeping current content",
                           self.kind.value)
            return False
        self._replace(parsed, Origin.EXTERNAL)
        return True

    # ── Local edits ──────────────────────────────────────────────────────

    def apply_local_edit(self, mutator: Mutator, *, debounce: bool = False) -> dict:
        """Apply ``mutator`` to canonical and schedule persistence.

        ``mutator`` returns the new content, or None when its target was not
        found, in which case nothing changes and nothing is saved. Returns
        the (possibly unchanged) canonical content.
        """
        updated = mutator(self.canonical)
        if updated is None or updated is self.canonical:
            return self.canonical

        self._replace(updated, Origin.LOCAL)
        self._guarded = True
        if self._on_commit is not None:
            self._on_commit(self.canonical, debounce)
        return self.canonical

    # ── Internals ────────────────────────────────────────────────────────

    def _replace(self, content: dict, origin: Origin) -> None:
        self.canonical = content
        self.origin = origin
        self.revision += 1
        if not self.has_loaded_once and has_content(self.kind, content):
            self.has_loaded_once = True
