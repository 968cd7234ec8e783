"""
Document Schema Layer.

Typed shapes for the three structured document kinds and structural
validation of parsed JSON content.

Shapes (wire format is JSON, see ``serialize_content``):
    kanban     {columns: [{id, title, tasks: [{id, title, description?}]}]}
    scorecard  {employeeName, period,
                perspectives: [{id, name,
                                kpis: [{id, name, target, current, unit, weight}]}]}
    idp        {employeeName, period,
                goals: [{id, goal, rationale,
                         actions: [{id, activity, type, timeline, status, linkedKPI?}]}]}

Usage:
    from artifact_studio.services.content_schema import DocumentKind, parse_content

    content = parse_content(DocumentKind.SCORECARD, raw)   # None if not usable yet
"""

from __future__ import annotations

import json
import logging
import uuid
from enum import Enum
from typing import NotRequired, TypedDict

from artifact_studio.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Enums & constants
# ═════════════════════════════════════════════════════════════════════════════

class DocumentKind(str, Enum):
    KANBAN = "kanban"
    SCORECARD = "scorecard"
    IDP = "idp"


class DocumentStatus(str, Enum):
    STREAMING = "streaming"
    IDLE = "idle"


class ActionStatus(str, Enum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


# not-started → in-progress → completed → not-started
ACTION_STATUS_CYCLE = {
    ActionStatus.NOT_STARTED.value: ActionStatus.IN_PROGRESS.value,
    ActionStatus.IN_PROGRESS.value: ActionStatus.COMPLETED.value,
    ActionStatus.COMPLETED.value: ActionStatus.NOT_STARTED.value,
}

DEFAULT_TASK_TITLE = "New Task"

# Top-level collection per kind; "has content" means this list is non-empty.
ROOT_COLLECTION = {
    DocumentKind.KANBAN: "columns",
    DocumentKind.SCORECARD: "perspectives",
    DocumentKind.IDP: "goals",
}

KPI_NUMERIC_FIELDS = frozenset({"target", "current", "weight"})
KPI_FIELDS = frozenset({"name", "unit"}) | KPI_NUMERIC_FIELDS


# ═════════════════════════════════════════════════════════════════════════════
# Typed shapes
# ═════════════════════════════════════════════════════════════════════════════

class KanbanTask(TypedDict):
    id: str
    title: str
    description: NotRequired[str]


class KanbanColumn(TypedDict):
    id: str
    title: str
    tasks: list[KanbanTask]


class KanbanContent(TypedDict):
    columns: list[KanbanColumn]


class Kpi(TypedDict):
    id: str
    name: str
    target: float
    current: float
    unit: str
    weight: float


class Perspective(TypedDict):
    id: str
    name: str
    kpis: list[Kpi]


class ScorecardContent(TypedDict):
    employeeName: str
    period: str
    perspectives: list[Perspective]


class Action(TypedDict):
    id: str
    activity: str
    type: str
    timeline: str
    status: str
    linkedKPI: NotRequired[str]


class Goal(TypedDict):
    id: str
    goal: str
    rationale: str
    actions: list[Action]


class IdpContent(TypedDict):
    employeeName: str
    period: str
    goals: list[Goal]


# ═════════════════════════════════════════════════════════════════════════════
# Field specs
#
# One entry per record type: required string fields, optional string
# fields, numeric fields, enumerated fields and the child collection.
# ═════════════════════════════════════════════════════════════════════════════

_RECORD_SPECS: dict[str, dict] = {
    "task": {"strings": ("id", "title"), "optional": ("description",)},
    "column": {"strings": ("id", "title"), "children": ("tasks", "task")},
    "kpi": {"strings": ("id", "name", "unit"), "numbers": ("target", "current", "weight")},
    "perspective": {"strings": ("id", "name"), "children": ("kpis", "kpi")},
    "action": {
        "strings": ("id", "activity", "type", "timeline", "status"),
        "optional": ("linkedKPI",),
        "choices": {"status": ACTION_STATUS_CYCLE},
    },
    "goal": {"strings": ("id", "goal", "rationale"), "children": ("actions", "action")},
}

_ROOT_SPECS: dict[DocumentKind, dict] = {
    DocumentKind.KANBAN: {"strings": (), "children": ("columns", "column")},
    DocumentKind.SCORECARD: {
        "strings": ("employeeName", "period"),
        "children": ("perspectives", "perspective"),
    },
    DocumentKind.IDP: {"strings": ("employeeName", "period"), "children": ("goals", "goal")},
}


def coerce_kind(kind: str | DocumentKind) -> DocumentKind:
    """Return ``kind`` as a DocumentKind or raise ValidationError."""
    try:
        return DocumentKind(kind)
    except ValueError:
        raise ValidationError(
            f"Unknown document kind: {kind!r}",
            details={"kind": f"must be one of {sorted(k.value for k in DocumentKind)}"},
        ) from None


def is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def empty_content(kind: str | DocumentKind) -> dict:
    """The structure shown before any generated content has been parsed."""
    kind = coerce_kind(kind)
    if kind is DocumentKind.KANBAN:
        return {"columns": []}
    return {"employeeName": "", "period": "", ROOT_COLLECTION[kind]: []}


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


# ═════════════════════════════════════════════════════════════════════════════
# Validation
# ═════════════════════════════════════════════════════════════════════════════

def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _check_record(record, spec: dict, path: str, errors: dict) -> None:
    if not isinstance(record, dict):
        errors[path] = "must be an object"
        return

    for name in spec.get("strings", ()):
        if not isinstance(record.get(name), str):
            errors[_join(path, name)] = "must be a string"
    for name in spec.get("optional", ()):
        if name in record and record[name] is not None and not isinstance(record[name], str):
            errors[_join(path, name)] = "must be a string when present"
    for name in spec.get("numbers", ()):
        if not is_number(record.get(name)):
            errors[_join(path, name)] = "must be a number"

    for name, choices in spec.get("choices", {}).items():
        value = record.get(name)
        if isinstance(value, str) and value not in choices:
            errors[_join(path, name)] = f"must be one of {sorted(choices)}"

    children = spec.get("children")
    if not children:
        return
    key, child_type = children
    items = record.get(key)
    if not isinstance(items, list):
        errors[_join(path, key)] = "must be a list"
        return

    seen: set[str] = set()
    for index, item in enumerate(items):
        item_path = f"{_join(path, key)}[{index}]"
        _check_record(item, _RECORD_SPECS[child_type], item_path, errors)
        item_id = item.get("id") if isinstance(item, dict) else None
        if isinstance(item_id, str):
            if item_id in seen:
                errors[_join(item_path, "id")] = f"duplicate id {item_id!r}"
            seen.add(item_id)


def validate_content(kind: str | DocumentKind, data) -> dict:
    """Validate a parsed structure against the shape for ``kind``.

    Returns the structure unchanged. Raises ValidationError with a
    path → message ``details`` map on the first pass that finds problems.
    """
    kind = coerce_kind(kind)
    errors: dict[str, str] = {}
    if not isinstance(data, dict):
        raise ValidationError(f"{kind.value} content must be a JSON object")
    _check_record(data, _ROOT_SPECS[kind], "", errors)
    if errors:
        raise ValidationError(f"Invalid {kind.value} content", details=errors)
    return data


def parse_content(kind: str | DocumentKind, raw: str | None) -> dict | None:
    """Parse and validate a raw JSON payload.

    Returns None when the payload is not usable yet: empty, truncated JSON
    (routine mid-stream), or a structure that does not fit the shape.
    Never raises for bad payloads.
    """
    kind = coerce_kind(kind)
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None
    try:
        return validate_content(kind, data)
    except ValidationError as exc:
        logger.debug("Ignoring structurally invalid %s payload: %s", kind.value, exc.details)
        return None


def has_content(kind: str | DocumentKind, data: dict | None) -> bool:
    """True if the top-level collection is non-empty."""
    if not data:
        return False
    return bool(data.get(ROOT_COLLECTION[coerce_kind(kind)]))


def serialize_content(data: dict) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def validate_record(record_type: str, data) -> dict:
    """Validate a single nested record ("task", "kpi", "goal", "action", ...)."""
    errors: dict[str, str] = {}
    _check_record(data, _RECORD_SPECS[record_type], "", errors)
    if errors:
        raise ValidationError(f"Invalid {record_type}", details=errors)
    return data
