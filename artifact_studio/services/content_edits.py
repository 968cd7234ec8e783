"""
Structural edit operations on canonical content.

Every operation is pure copy-on-write: it returns a new top-level dict that
shares every untouched substructure with its input, and only the records
on the path to the change are copied. An operation whose target cannot be
found (missing column, KPI, goal, ...) returns None, which callers treat as
"no change". Partial application never happens.

Caller errors (non-editable fields, malformed paths, ambiguous ids) raise
ValidationError.

Paths address records by id, alternating collection key and id and ending
with a field name:

    ("employeeName",)
    ("columns", "c1", "tasks", "t1", "title")
    "perspectives/financial/kpis/kpi-1/target"
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

from artifact_studio.core.exceptions import ValidationError
from artifact_studio.services.content_schema import (
    ACTION_STATUS_CYCLE,
    DEFAULT_TASK_TITLE,
    KPI_FIELDS,
    KPI_NUMERIC_FIELDS,
    ROOT_COLLECTION,
    ActionStatus,
    DocumentKind,
    coerce_kind,
    is_number,
    new_id,
    validate_record,
)

# collection key → record type stored in it
_COLLECTION_RECORD = {
    "columns": "column",
    "tasks": "task",
    "perspectives": "perspective",
    "kpis": "kpi",
    "goals": "goal",
    "actions": "action",
}

# record type → child collection key
_CHILD_COLLECTION = {"column": "tasks", "perspective": "kpis", "goal": "actions"}

_EDITABLE_FIELDS = {
    "column": frozenset({"title"}),
    "task": frozenset({"title", "description"}),
    "perspective": frozenset({"name"}),
    "kpi": KPI_FIELDS,
    "goal": frozenset({"goal", "rationale"}),
    "action": frozenset({"activity", "type", "timeline", "status", "linkedKPI"}),
}

_ROOT_EDITABLE = {
    DocumentKind.KANBAN: frozenset(),
    DocumentKind.SCORECARD: frozenset({"employeeName", "period"}),
    DocumentKind.IDP: frozenset({"employeeName", "period"}),
}

Update = Callable[[dict], "dict | None"]


# ═════════════════════════════════════════════════════════════════════════════
# Path helpers
# ═════════════════════════════════════════════════════════════════════════════

def parse_path(path: str | Sequence[str]) -> tuple[str, ...]:
    if isinstance(path, str):
        segments = tuple(s for s in path.strip("/").split("/") if s)
    else:
        segments = tuple(str(s) for s in path)
    if not segments:
        raise ValidationError("Path must not be empty", details={"path": "required"})
    return segments


def _update_at(record: dict, segments: Sequence[str], update: Update) -> dict | None:
    """Rebuild ``record`` along ``segments`` with ``update`` applied at the end."""
    if not segments:
        return update(record)
    key, item_id, *rest = segments
    items = record.get(key)
    if not isinstance(items, list):
        return None
    for index, item in enumerate(items):
        if item.get("id") == item_id:
            replaced = _update_at(item, rest, update)
            if replaced is None:
                return None
            new_items = list(items)
            new_items[index] = replaced
            return {**record, key: new_items}
    return None


def _fresh_id(prefix: str, siblings: list[dict]) -> str:
    taken = {item.get("id") for item in siblings}
    candidate = new_id(prefix)
    while candidate in taken:
        candidate = new_id(prefix)
    return candidate


def _without_id(record_type: str, fields: dict) -> dict:
    """Validate a caller-supplied record; the id is always assigned here."""
    fields = {k: v for k, v in fields.items() if k != "id"}
    validate_record(record_type, {"id": "pending", **fields})
    return fields


def _append_to(collection: str, prefix: str, record: dict) -> Update:
    def update(parent: dict) -> dict:
        items = parent.get(collection) or []
        added = {"id": _fresh_id(prefix, items), **record}
        return {**parent, collection: [*items, added]}
    return update


def _remove_from(collection: str, item_id: str) -> Update:
    def update(parent: dict) -> dict | None:
        items = parent.get(collection) or []
        kept = [item for item in items if item.get("id") != item_id]
        if len(kept) == len(items):
            return None
        return {**parent, collection: kept}
    return update


def _resolve_record_type(kind: DocumentKind, container: Sequence[str]) -> str:
    """Walk the collection keys of a path and return the record type at its end."""
    record_type = "root"
    expected = ROOT_COLLECTION[kind]
    for position in range(0, len(container), 2):
        key = container[position]
        if key != expected:
            raise ValidationError(
                f"Unexpected collection {key!r} in path",
                details={"path": "/".join(container), "expected": expected},
            )
        record_type = _COLLECTION_RECORD[key]
        expected = _CHILD_COLLECTION.get(record_type)
    return record_type


def _coerce_value(record_type: str, field: str, value):
    if record_type == "kpi" and field in KPI_NUMERIC_FIELDS:
        if is_number(value):
            return value
        if value is None:
            return 0
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                return 0
        raise ValidationError(f"{field} must be a number", details={field: repr(value)})
    if record_type == "action" and field == "status":
        if value not in ACTION_STATUS_CYCLE:
            raise ValidationError(
                f"Invalid action status: {value!r}",
                details={"status": f"must be one of {sorted(ACTION_STATUS_CYCLE)}"},
            )
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: repr(value)})
    return value


# ═════════════════════════════════════════════════════════════════════════════
# Generic field edit
# ═════════════════════════════════════════════════════════════════════════════

def edit_field(kind: str | DocumentKind, content: dict, path, value) -> dict | None:
    """Set one field of one record. Numeric KPI fields accept numeric strings."""
    kind = coerce_kind(kind)
    segments = parse_path(path)
    *container, field = segments
    if len(container) % 2:
        raise ValidationError(
            "Path must alternate collection and id before the field name",
            details={"path": "/".join(segments)},
        )
    record_type = _resolve_record_type(kind, container)
    editable = _ROOT_EDITABLE[kind] if record_type == "root" else _EDITABLE_FIELDS[record_type]
    if field not in editable:
        raise ValidationError(
            f"Field {field!r} is not editable on {record_type}",
            details={"field": f"must be one of {sorted(editable)}"},
        )
    coerced = _coerce_value(record_type, field, value)
    return _update_at(content, container, lambda record: {**record, field: coerced})


# ═════════════════════════════════════════════════════════════════════════════
# Kanban
# ═════════════════════════════════════════════════════════════════════════════

def add_task(content: dict, column_id: str, title: str = DEFAULT_TASK_TITLE,
             description: str = "") -> dict | None:
    task = {"title": title, "description": description}
    return _update_at(content, ("columns", column_id), _append_to("tasks", "task", task))


def delete_task(content: dict, column_id: str, task_id: str) -> dict | None:
    return _update_at(content, ("columns", column_id), _remove_from("tasks", task_id))


def move_task(content: dict, task_id: str, from_column: str, to_column: str) -> dict | None:
    """Move a task to the end of ``to_column`` (the same column reorders it last)."""
    columns = content.get("columns") or []
    source = next((c for c in columns if c.get("id") == from_column), None)
    target = next((c for c in columns if c.get("id") == to_column), None)
    if source is None or target is None:
        return None
    task = next((t for t in source.get("tasks") or [] if t.get("id") == task_id), None)
    if task is None:
        return None

    new_columns = []
    for column in columns:
        tasks = column.get("tasks") or []
        if column is source:
            tasks = [t for t in tasks if t.get("id") != task_id]
        if column is target:
            tasks = [*tasks, task]
        if column is source or column is target:
            column = {**column, "tasks": tasks}
        new_columns.append(column)
    return {**content, "columns": new_columns}


# ═════════════════════════════════════════════════════════════════════════════
# Scorecard
# ═════════════════════════════════════════════════════════════════════════════

def add_kpi(content: dict, perspective_id: str, kpi: dict | None = None) -> dict | None:
    fields = kpi or {"name": "New KPI", "target": 100, "current": 0, "unit": "%", "weight": 0}
    fields = _without_id("kpi", fields)
    return _update_at(content, ("perspectives", perspective_id), _append_to("kpis", "kpi", fields))


def delete_kpi(content: dict, perspective_id: str, kpi_id: str) -> dict | None:
    return _update_at(content, ("perspectives", perspective_id), _remove_from("kpis", kpi_id))


def set_kpi_field(content: dict, perspective_id: str, kpi_id: str, field: str, value) -> dict | None:
    return edit_field(
        DocumentKind.SCORECARD, content,
        ("perspectives", perspective_id, "kpis", kpi_id, field), value,
    )


# ═════════════════════════════════════════════════════════════════════════════
# IDP
# ═════════════════════════════════════════════════════════════════════════════

def toggle_status(content: dict, action_id: str, goal_id: str | None = None) -> dict | None:
    """Advance an action one step along not-started → in-progress → completed."""
    if goal_id is None:
        owners = [
            g.get("id") for g in content.get("goals") or []
            if any(a.get("id") == action_id for a in g.get("actions") or [])
        ]
        if not owners:
            return None
        if len(owners) > 1:
            raise ValidationError(
                f"Action id {action_id!r} exists in several goals; goal_id is required",
                details={"goal_id": owners},
            )
        goal_id = owners[0]

    def advance(action: dict) -> dict:
        current = action.get("status")
        return {**action, "status": ACTION_STATUS_CYCLE.get(current, ActionStatus.NOT_STARTED.value)}

    return _update_at(content, ("goals", goal_id, "actions", action_id), advance)


def add_goal(content: dict, goal: str = "New Goal", rationale: str = "") -> dict | None:
    return _append_to("goals", "goal", {"goal": goal, "rationale": rationale, "actions": []})(content)


def delete_goal(content: dict, goal_id: str) -> dict | None:
    return _remove_from("goals", goal_id)(content)


def add_action(content: dict, goal_id: str, action: dict | None = None) -> dict | None:
    fields = action or {
        "activity": "New Action",
        "type": "Training",
        "timeline": "",
        "status": ActionStatus.NOT_STARTED.value,
    }
    fields = _without_id("action", fields)
    return _update_at(content, ("goals", goal_id), _append_to("actions", "action", fields))


def delete_action(content: dict, goal_id: str, action_id: str) -> dict | None:
    return _update_at(content, ("goals", goal_id), _remove_from("actions", action_id))
