"""
Tests for the reconciliation engine.

Tests:
    - External payloads replace canonical only when parseable
    - has_loaded_once latches
    - Local edits arm a single-shot guard that swallows one payload
    - Snapshot loads bypass the guard
    - on_commit receives the new canonical value and debounce flag
"""

import json

from artifact_studio.services.content_edits import add_task, edit_field, move_task
from artifact_studio.services.reconciliation import (
    IngestOutcome,
    Origin,
    ReconciliationEngine,
)


def _engine(kind="kanban"):
    commits = []
    engine = ReconciliationEngine(kind, on_commit=lambda content, debounce: commits.append((content, debounce)))
    return engine, commits


class TestExternalPayloads:
    def test_initial_state(self):
        engine, _ = _engine("idp")
        assert engine.canonical == {"employeeName": "", "period": "", "goals": []}
        assert engine.has_loaded_once is False
        assert engine.revision == 0

    def test_apply_valid_payload(self, kanban):
        engine, commits = _engine()
        assert engine.apply_external(json.dumps(kanban)) is IngestOutcome.APPLIED
        assert engine.canonical == kanban
        assert engine.origin is Origin.EXTERNAL
        assert engine.has_loaded_once is True
        assert engine.revision == 1
        assert commits == []

    def test_truncated_payload_keeps_canonical(self, kanban):
        engine, _ = _engine()
        engine.apply_external(json.dumps(kanban))
        before = engine.canonical
        assert engine.apply_external(json.dumps(kanban)[:40]) is IngestOutcome.UNPARSEABLE
        assert engine.canonical is before
        assert engine.revision == 1

    def test_empty_structure_does_not_set_loaded(self):
        engine, _ = _engine()
        engine.apply_external('{"columns": []}')
        assert engine.has_loaded_once is False

    def test_loaded_flag_latches(self, kanban):
        engine, _ = _engine()
        engine.apply_external(json.dumps(kanban))
        engine.apply_external('{"columns": []}')
        assert engine.canonical == {"columns": []}
        assert engine.has_loaded_once is True


class TestGuard:
    def test_edit_swallows_exactly_one_payload(self, kanban):
        engine, _ = _engine()
        engine.apply_external(json.dumps(kanban))
        edited = engine.apply_local_edit(lambda c: move_task(c, "t1", "todo", "done"))

        assert engine.guarded is True
        assert engine.apply_external(json.dumps(kanban)) is IngestOutcome.GUARDED
        assert engine.canonical is edited
        assert engine.guarded is False

        assert engine.apply_external(json.dumps(kanban)) is IngestOutcome.APPLIED
        assert engine.canonical == kanban

    def test_several_edits_still_one_payload(self, kanban):
        engine, _ = _engine()
        engine.apply_external(json.dumps(kanban))
        engine.apply_local_edit(lambda c: add_task(c, "doing"))
        engine.apply_local_edit(lambda c: add_task(c, "doing"))
        assert engine.apply_external(json.dumps(kanban)) is IngestOutcome.GUARDED
        assert engine.apply_external(json.dumps(kanban)) is IngestOutcome.APPLIED

    def test_unparseable_payload_still_consumes_guard(self, kanban):
        engine, _ = _engine()
        engine.apply_external(json.dumps(kanban))
        engine.apply_local_edit(lambda c: add_task(c, "doing"))
        assert engine.apply_external("{not json") is IngestOutcome.GUARDED
        assert engine.guarded is False

    def test_snapshot_load_clears_guard(self, kanban):
        engine, _ = _engine()
        engine.apply_external(json.dumps(kanban))
        engine.apply_local_edit(lambda c: add_task(c, "doing"))
        assert engine.load_snapshot(json.dumps(kanban)) is True
        assert engine.guarded is False
        assert engine.canonical == kanban

    def test_bad_snapshot_keeps_content(self, kanban):
        engine, _ = _engine()
        engine.apply_external(json.dumps(kanban))
        assert engine.load_snapshot("{") is False
        assert engine.canonical == kanban


class TestLocalEdits:
    def test_commit_hook_receives_content(self, scorecard):
        engine, commits = _engine("scorecard")
        engine.apply_external(json.dumps(scorecard))
        result = engine.apply_local_edit(
            lambda c: edit_field("scorecard", c, "period", "2026 H2"), debounce=True,
        )
        assert result["period"] == "2026 H2"
        assert engine.origin is Origin.LOCAL
        assert commits == [(result, True)]

    def test_noop_mutation_does_nothing(self, kanban):
        engine, commits = _engine()
        engine.apply_external(json.dumps(kanban))
        revision = engine.revision
        engine.apply_local_edit(lambda c: add_task(c, "missing"))
        engine.apply_local_edit(lambda c: c)
        assert engine.revision == revision
        assert engine.guarded is False
        assert commits == []

    def test_revision_is_monotonic(self, kanban):
        engine, _ = _engine()
        revisions = [engine.revision]
        engine.apply_external(json.dumps(kanban))
        revisions.append(engine.revision)
        engine.apply_local_edit(lambda c: add_task(c, "todo"))
        revisions.append(engine.revision)
        engine.load_snapshot(json.dumps(kanban))
        revisions.append(engine.revision)
        assert revisions == sorted(set(revisions))
