"""
Document Session — one open document and everything that mutates it.

Wires the components together:

    deliver()  ─┐
    edits      ─┼─> ReconciliationEngine ──> SaveScheduler ──> VersionHistory ──> DocumentStore
    accept()   ─┘          │
                           └─> derived_metrics.summarize() for display

and implements the three inbound interfaces:

    Ingest               deliver(kind, raw, is_final)
    Suggestion delivery  deliver_suggestion(payload)
    User operations      edit_field, toggle_status, move_task, add_task,
                         delete_task, add/delete kpi/goal/action,
                         accept_suggestion, reject_suggestion,
                         go_to_version, copy_as_text

Structural edits save immediately; field edits are debounced. Edits made
while browsing an old version always save immediately so the branch point
is created at once.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from artifact_studio.ai.suggestion_engine import SuggestionEngine, accept
from artifact_studio.core.exceptions import PersistenceError, ValidationError
from artifact_studio.services import content_edits
from artifact_studio.services.content_schema import (
    DocumentKind,
    DocumentStatus,
    ROOT_COLLECTION,
    coerce_kind,
    serialize_content,
)
from artifact_studio.services.derived_metrics import summarize
from artifact_studio.services.document_store import DocumentStore
from artifact_studio.services.reconciliation import IngestOutcome, ReconciliationEngine
from artifact_studio.services.save_scheduler import DEFAULT_DEBOUNCE_SECONDS, SaveScheduler
from artifact_studio.services.version_history import VersionHistory

logger = logging.getLogger(__name__)


class DocumentSession:
    def __init__(
        self,
        document_id: str,
        kind: str | DocumentKind,
        store: DocumentStore,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.document_id = document_id
        self.kind = coerce_kind(kind)
        self.status = DocumentStatus.IDLE
        self.notifications: list[dict] = []

        self.history = VersionHistory(document_id, store, on_error=self._notify_save_failure)
        self.scheduler = SaveScheduler(
            self.history.commit, debounce_seconds=debounce_seconds, clock=clock,
        )
        self.engine = ReconciliationEngine(self.kind, on_commit=self._schedule_save)
        self.suggestions = SuggestionEngine(document_id)

    @property
    def _log_extra(self) -> dict:
        return {"document_id": self.document_id, "kind": self.kind.value}

    # ── Lifecycle ────────────────────────────────────────────────────────

    def open(self) -> "DocumentSession":
        """Load stored versions and show the latest one."""
        versions = self.history.load()
        if versions:
            self.engine.load_snapshot(versions[-1])
        logger.debug("Opened document %s with %d version(s)", self.document_id,
                     len(versions), extra=self._log_extra)
        return self

    @property
    def content(self) -> dict:
        return self.engine.canonical

    @property
    def is_loading(self) -> bool:
        """True while streaming and nothing displayable has arrived yet."""
        return (
            not self.engine.has_loaded_once
            and self.status is DocumentStatus.STREAMING
            and not self.content.get(ROOT_COLLECTION[self.kind])
        )

    def poll(self) -> bool:
        """Write a debounced save whose quiet period has passed."""
        return self.scheduler.poll()

    def flush(self) -> bool:
        """Write any pending debounced save now."""
        return self.scheduler.flush()

    def retry_save(self) -> bool:
        """Persist current content after a failed save."""
        if self.history.unsaved is None:
            return False
        self.scheduler.cancel()
        return self.history.commit(serialize_content(self.content))

    def drain_notifications(self) -> list[dict]:
        drained, self.notifications = self.notifications, []
        return drained

    # ── Ingest ───────────────────────────────────────────────────────────

    def deliver(self, kind: str | DocumentKind, raw: str, is_final: bool = False) -> IngestOutcome:
        """Take one generation payload (full content so far, possibly truncated)."""
        if coerce_kind(kind) is not self.kind:
            raise ValidationError(
                f"Payload kind {kind!r} does not match document kind {self.kind.value!r}",
                details={"kind": self.kind.value},
            )
        self.status = DocumentStatus.IDLE if is_final else DocumentStatus.STREAMING
        outcome = self.engine.apply_external(raw)
        if outcome is IngestOutcome.APPLIED:
            # cursor and displayed content leave the old snapshot together
            if self.history.is_browsing:
                self.history.to_latest()
            self.scheduler.cancel()
            if is_final:
                self.history.commit(serialize_content(self.content))
        logger.debug("Ingested %s payload for %s: %s (final=%s)", self.kind.value,
                     self.document_id, outcome.value, is_final, extra=self._log_extra)
        return outcome

    def deliver_suggestion(self, payload: dict) -> dict | None:
        if self.kind is not DocumentKind.SCORECARD:
            raise ValidationError(
                "Structured suggestions are only supported for scorecards",
                details={"kind": self.kind.value},
            )
        suggestion = self.suggestions.deliver(payload)
        return suggestion.to_dict() if suggestion else None

    # ── User operations ──────────────────────────────────────────────────

    def edit_field(self, path, value) -> dict:
        return self._edit(lambda c: content_edits.edit_field(self.kind, c, path, value), debounce=True)

    def toggle_status(self, action_id: str, goal_id: str | None = None) -> dict:
        self._require(DocumentKind.IDP)
        return self._edit(lambda c: content_edits.toggle_status(c, action_id, goal_id))

    def move_task(self, task_id: str, from_column: str, to_column: str) -> dict:
        self._require(DocumentKind.KANBAN)
        return self._edit(lambda c: content_edits.move_task(c, task_id, from_column, to_column))

    def add_task(self, column_id: str) -> dict:
        self._require(DocumentKind.KANBAN)
        return self._edit(lambda c: content_edits.add_task(c, column_id))

    def delete_task(self, column_id: str, task_id: str) -> dict:
        self._require(DocumentKind.KANBAN)
        return self._edit(lambda c: content_edits.delete_task(c, column_id, task_id))

    def add_kpi(self, perspective_id: str, kpi: dict | None = None) -> dict:
        self._require(DocumentKind.SCORECARD)
        return self._edit(lambda c: content_edits.add_kpi(c, perspective_id, kpi))

    def delete_kpi(self, perspective_id: str, kpi_id: str) -> dict:
        self._require(DocumentKind.SCORECARD)
        return self._edit(lambda c: content_edits.delete_kpi(c, perspective_id, kpi_id))

    def add_goal(self, goal: str = "New Goal", rationale: str = "") -> dict:
        self._require(DocumentKind.IDP)
        return self._edit(lambda c: content_edits.add_goal(c, goal, rationale))

    def delete_goal(self, goal_id: str) -> dict:
        self._require(DocumentKind.IDP)
        return self._edit(lambda c: content_edits.delete_goal(c, goal_id))

    def add_action(self, goal_id: str, action: dict | None = None) -> dict:
        self._require(DocumentKind.IDP)
        return self._edit(lambda c: content_edits.add_action(c, goal_id, action))

    def delete_action(self, goal_id: str, action_id: str) -> dict:
        self._require(DocumentKind.IDP)
        return self._edit(lambda c: content_edits.delete_action(c, goal_id, action_id))

    def accept_suggestion(self, suggestion_id: str) -> dict:
        """Apply an applicable, unresolved suggestion and mark it resolved.

        Accepting a resolved or advisory-only suggestion changes nothing.
        """
        suggestion = self.suggestions.get(suggestion_id)
        if self.suggestions.is_resolved(suggestion_id) or not suggestion.applicable:
            return self.content
        result = self._edit(lambda c: accept(suggestion, c))
        self.suggestions.resolve(suggestion_id)
        logger.info("Accepted suggestion %s (%s)", suggestion_id, suggestion.type.value,
                    extra=self._log_extra)
        return result

    def reject_suggestion(self, suggestion_id: str) -> bool:
        return self.suggestions.reject(suggestion_id)

    def go_to_version(self, direction: str) -> dict:
        """Step the history cursor and display that snapshot."""
        self.scheduler.flush()
        snapshot = self.history.go(direction)
        if snapshot is not None:
            self.engine.load_snapshot(snapshot)
        return self.content

    def copy_as_text(self) -> str:
        return serialize_content(self.content)

    # ── Views ────────────────────────────────────────────────────────────

    def metrics(self) -> dict:
        return summarize(self.kind, self.content)

    def version_info(self) -> dict:
        return {
            "count": len(self.history),
            "current_index": self.history.cursor,
            "is_current_version": self.history.is_current_version,
            "has_pending_save": self.scheduler.has_pending,
            "has_unsaved_changes": self.history.unsaved is not None,
        }

    def to_dict(self) -> dict:
        data = {
            "id": self.document_id,
            "kind": self.kind.value,
            "status": self.status.value,
            "is_loading": self.is_loading,
            "revision": self.engine.revision,
            "content": self.content,
            "metrics": self.metrics(),
            "versions": self.version_info(),
        }
        if self.kind is DocumentKind.SCORECARD:
            data["suggestions"] = self.suggestions.to_list(include_resolved=False)
        return data

    # ── Internals ────────────────────────────────────────────────────────

    def _require(self, kind: DocumentKind) -> None:
        if self.kind is not kind:
            raise ValidationError(
                f"Operation requires a {kind.value} document",
                details={"kind": self.kind.value},
            )

    def _edit(self, mutator, *, debounce: bool = False) -> dict:
        debounce = debounce and not self.history.is_browsing
        return self.engine.apply_local_edit(mutator, debounce=debounce)

    def _schedule_save(self, content: dict, debounce: bool) -> None:
        self.scheduler.submit(serialize_content(content), debounce=debounce)

    def _notify_save_failure(self, error: PersistenceError) -> None:
        self.notifications.append({
            "level": "error",
            "message": "Your changes could not be saved yet. They are kept and will be retried.",
            "operation": error.operation,
            "at": datetime.now(timezone.utc).isoformat(),
        })
