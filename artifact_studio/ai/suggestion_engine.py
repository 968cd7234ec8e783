"""
Artifact Studio
Suggestion Engine — AI-proposed scorecard mutations.

Suggestions arrive one at a time from the analysis collaborator, are kept
in delivery order, and are never removed or rewritten. The only state that
changes is engine-local: whether a suggestion has been resolved (accepted
or rejected).

Each suggestion type is its own variant carrying only the fields it needs:

    add-kpi              AddKpiSuggestion          perspective_id, new_kpi
    adjust-target        KpiAdjustmentSuggestion   perspective_id, kpi_id, field="target", value
    adjust-weight        KpiAdjustmentSuggestion   perspective_id, kpi_id, field="weight", value
    rebalance-weights    AdvisorySuggestion        (no machine-applicable change)
    general              AdvisorySuggestion        (no machine-applicable change)

Usage:
    from artifact_studio.ai.suggestion_engine import SuggestionEngine, suggestion_from_dict

    engine = SuggestionEngine(document_id)
    engine.deliver(payload)
    new_content = accept(engine.get(sid), content)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import Enum

from artifact_studio.core.exceptions import NotFoundError, ValidationError
from artifact_studio.services import content_edits
from artifact_studio.services.content_schema import KPI_FIELDS, is_number, validate_record

logger = logging.getLogger(__name__)


class SuggestionType(str, Enum):
    ADD_KPI = "add-kpi"
    ADJUST_TARGET = "adjust-target"
    ADJUST_WEIGHT = "adjust-weight"
    REBALANCE_WEIGHTS = "rebalance-weights"
    GENERAL = "general"


# adjust-* suggestions may only touch the field their tag names
_ADJUSTED_FIELD = {
    SuggestionType.ADJUST_TARGET: "target",
    SuggestionType.ADJUST_WEIGHT: "weight",
}


# ═════════════════════════════════════════════════════════════════════════════
# Variants
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Suggestion:
    """Fields shared by every suggestion type."""
    id: str
    document_id: str
    type: SuggestionType
    description: str
    rationale: str

    @property
    def applicable(self) -> bool:
        return False

    def apply(self, content: dict) -> dict | None:
        """New content with this suggestion applied, or None if its target is gone."""
        return None

    def change(self) -> dict:
        return {}

    def to_dict(self, resolved: bool = False) -> dict:
        return {
            "id": self.id,
            "documentId": self.document_id,
            "type": self.type.value,
            "description": self.description,
            "rationale": self.rationale,
            "change": self.change(),
            "isResolved": resolved,
        }


@dataclass(frozen=True)
class AddKpiSuggestion(Suggestion):
    perspective_id: str
    new_kpi: dict

    @property
    def applicable(self) -> bool:
        return True

    def apply(self, content: dict) -> dict | None:
        return content_edits.add_kpi(content, self.perspective_id, dict(self.new_kpi))

    def change(self) -> dict:
        return {"perspectiveId": self.perspective_id, "newKpi": dict(self.new_kpi)}


@dataclass(frozen=True)
class KpiAdjustmentSuggestion(Suggestion):
    perspective_id: str
    kpi_id: str
    field: str
    value: float

    @property
    def applicable(self) -> bool:
        return True

    def apply(self, content: dict) -> dict | None:
        return content_edits.set_kpi_field(
            content, self.perspective_id, self.kpi_id, self.field, self.value,
        )

    def change(self) -> dict:
        return {
            "perspectiveId": self.perspective_id,
            "kpiId": self.kpi_id,
            "field": self.field,
            "value": self.value,
        }


@dataclass(frozen=True)
class AdvisorySuggestion(Suggestion):
    """rebalance-weights and general: acknowledged by the human, never applied."""


# ═════════════════════════════════════════════════════════════════════════════
# Construction
# ═════════════════════════════════════════════════════════════════════════════

def _required_str(change: dict, key: str, errors: dict) -> str:
    value = change.get(key)
    if not isinstance(value, str) or not value:
        errors[f"change.{key}"] = "is required"
        return ""
    return value


def _numeric(value, key: str, errors: dict) -> float:
    if is_number(value):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            pass
    errors[key] = "must be a number"
    return 0


def suggestion_from_dict(payload: dict) -> Suggestion:
    """Build the variant for ``payload["type"]``.

    Raises ValidationError when the payload's fields do not match its type.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Suggestion must be a JSON object")

    try:
        stype = SuggestionType(payload.get("type"))
    except ValueError:
        raise ValidationError(
            f"Unknown suggestion type: {payload.get('type')!r}",
            details={"type": f"must be one of {[t.value for t in SuggestionType]}"},
        ) from None

    errors: dict[str, str] = {}
    document_id = payload.get("documentId") or payload.get("document_id")
    if not isinstance(document_id, str) or not document_id:
        errors["documentId"] = "is required"
    for key in ("description", "rationale"):
        if not isinstance(payload.get(key, ""), str):
            errors[key] = "must be a string"

    common = {
        "id": str(payload.get("id") or uuid.uuid4()),
        "document_id": document_id or "",
        "type": stype,
        "description": payload.get("description") or "",
        "rationale": payload.get("rationale") or "",
    }
    change = payload.get("change") or {}
    if not isinstance(change, dict):
        raise ValidationError("Suggestion change must be an object", details={"change": repr(change)})

    if stype is SuggestionType.ADD_KPI:
        perspective_id = _required_str(change, "perspectiveId", errors)
        new_kpi = change.get("newKpi")
        if not isinstance(new_kpi, dict):
            errors["change.newKpi"] = "is required"
            new_kpi = {}
        else:
            new_kpi = {k: v for k, v in new_kpi.items() if k != "id"}
            try:
                validate_record("kpi", {"id": "pending", **new_kpi})
            except ValidationError as exc:
                errors.update({f"change.newKpi.{k}": v for k, v in exc.details.items()})
        if errors:
            raise ValidationError("Invalid add-kpi suggestion", details=errors)
        return AddKpiSuggestion(**common, perspective_id=perspective_id, new_kpi=new_kpi)

    if stype in _ADJUSTED_FIELD:
        perspective_id = _required_str(change, "perspectiveId", errors)
        kpi_id = _required_str(change, "kpiId", errors)
        expected = _ADJUSTED_FIELD[stype]
        target_field = change.get("field") or expected
        if target_field != expected or target_field not in KPI_FIELDS:
            errors["change.field"] = f"must be {expected!r} for {stype.value}"
        if change.get("value") is None:
            errors["change.value"] = "is required"
            value = 0
        else:
            value = _numeric(change.get("value"), "change.value", errors)
        if errors:
            raise ValidationError(f"Invalid {stype.value} suggestion", details=errors)
        return KpiAdjustmentSuggestion(
            **common, perspective_id=perspective_id, kpi_id=kpi_id,
            field=target_field, value=value,
        )

    if errors:
        raise ValidationError(f"Invalid {stype.value} suggestion", details=errors)
    return AdvisorySuggestion(**common)


# ═════════════════════════════════════════════════════════════════════════════
# Operations
# ═════════════════════════════════════════════════════════════════════════════

def is_applicable(suggestion: Suggestion) -> bool:
    return suggestion.applicable


def accept(suggestion: Suggestion, canonical: dict) -> dict:
    """Apply ``suggestion`` to ``canonical``.

    Returns ``canonical`` itself (unchanged) when the suggestion is not
    applicable or its perspective/KPI no longer exists.
    """
    if not suggestion.applicable:
        return canonical
    updated = suggestion.apply(canonical)
    if updated is None:
        logger.info("Suggestion %s target not found; nothing applied", suggestion.id)
        return canonical
    return updated


class SuggestionEngine:
    """Append-only suggestion list plus engine-local resolution state."""

    def __init__(self, document_id: str):
        self.document_id = document_id
        self._suggestions: list[Suggestion] = []
        self._by_id: dict[str, Suggestion] = {}
        self._resolved: set[str] = set()

    def deliver(self, suggestion: Suggestion | dict) -> Suggestion | None:
        """Append a suggestion. A repeated id is dropped and returns None."""
        if isinstance(suggestion, dict):
            suggestion = suggestion_from_dict(suggestion)
        if suggestion.document_id != self.document_id:
            raise ValidationError(
                "Suggestion belongs to another document",
                details={"documentId": suggestion.document_id},
            )
        if suggestion.id in self._by_id:
            logger.warning("Dropped duplicate suggestion %s for document %s",
                           suggestion.id, self.document_id,
                           extra={"document_id": self.document_id})
            return None
        self._suggestions.append(suggestion)
        self._by_id[suggestion.id] = suggestion
        return suggestion

    def get(self, suggestion_id: str) -> Suggestion:
        suggestion = self._by_id.get(suggestion_id)
        if suggestion is None:
            raise NotFoundError(resource="Suggestion", resource_id=suggestion_id)
        return suggestion

    def is_resolved(self, suggestion_id: str) -> bool:
        return suggestion_id in self._resolved

    def resolve(self, suggestion_id: str) -> bool:
        """Mark resolved. Returns False if it already was."""
        self.get(suggestion_id)
        if suggestion_id in self._resolved:
            return False
        self._resolved.add(suggestion_id)
        return True

    def reject(self, suggestion_id: str) -> bool:
        """Pure bookkeeping; never touches document content. Idempotent."""
        return self.resolve(suggestion_id)

    def all(self) -> list[Suggestion]:
        return list(self._suggestions)

    def pending(self) -> list[Suggestion]:
        return [s for s in self._suggestions if s.id not in self._resolved]

    def to_list(self, include_resolved: bool = True) -> list[dict]:
        items = self._suggestions if include_resolved else self.pending()
        return [s.to_dict(resolved=s.id in self._resolved) for s in items]
