"""
Derived Metrics Calculator.

Pure functions computing display views (scores, progress, counts) from a
canonical content snapshot. Nothing here mutates its argument.

Scorecard scores are percentages in [0, 100]:
    perspective_score = Σ(min(current/target, 1)·100·weight) / Σ(weight)
    overall_score     = mean(perspective_score(p) for p in perspectives)

Usage:
    from artifact_studio.services.derived_metrics import summarize

    view = summarize("scorecard", content)
"""

from __future__ import annotations

from artifact_studio.services.content_schema import (
    ActionStatus,
    DocumentKind,
    coerce_kind,
)

# Achievement thresholds for the per-KPI status band
ON_TRACK_THRESHOLD = 90.0
AT_RISK_THRESHOLD = 70.0

_WEIGHT_TOLERANCE = 1e-6


# ═════════════════════════════════════════════════════════════════════════════
# Scorecard
# ═════════════════════════════════════════════════════════════════════════════

def kpi_achievement(kpi: dict) -> float:
    """Percent of target reached, clamped to [0, 100].

    A KPI without a positive target has nothing measurable to reach and
    scores 0.
    """
    target = kpi.get("target") or 0
    if target <= 0:
        return 0.0
    ratio = (kpi.get("current") or 0) / target
    return max(0.0, min(ratio, 1.0)) * 100.0


def kpi_status(kpi: dict) -> str:
    achievement = kpi_achievement(kpi)
    if achievement >= ON_TRACK_THRESHOLD:
        return "on-track"
    if achievement >= AT_RISK_THRESHOLD:
        return "at-risk"
    return "off-track"


def weight_total(kpis: list[dict]) -> float:
    return sum(kpi.get("weight") or 0 for kpi in kpis)


def weights_balanced(kpis: list[dict]) -> bool:
    """Advisory check: do the weights of a perspective sum to 100?"""
    return abs(weight_total(kpis) - 100.0) <= _WEIGHT_TOLERANCE


def perspective_score(kpis: list[dict]) -> float:
    """Weighted achievement of a perspective; 0 for no KPIs or zero weight."""
    if not kpis:
        return 0.0
    total_weight = weight_total(kpis)
    if total_weight == 0:
        return 0.0
    weighted = sum(kpi_achievement(kpi) * (kpi.get("weight") or 0) for kpi in kpis)
    return weighted / total_weight


def overall_score(perspectives: list[dict]) -> float | None:
    """Mean of the perspective scores, or None when there are none.

    Callers display None as 0.
    """
    if not perspectives:
        return None
    scores = [perspective_score(p.get("kpis") or []) for p in perspectives]
    return sum(scores) / len(scores)


def scorecard_summary(content: dict) -> dict:
    perspectives = content.get("perspectives") or []
    overall = overall_score(perspectives)
    return {
        "overall_score": overall if overall is not None else 0.0,
        "perspectives": [
            {
                "id": p.get("id"),
                "name": p.get("name"),
                "score": perspective_score(p.get("kpis") or []),
                "kpi_count": len(p.get("kpis") or []),
                "weight_total": weight_total(p.get("kpis") or []),
                "weights_balanced": weights_balanced(p.get("kpis") or []),
                "kpis": [
                    {
                        "id": k.get("id"),
                        "achievement": kpi_achievement(k),
                        "status": kpi_status(k),
                    }
                    for k in p.get("kpis") or []
                ],
            }
            for p in perspectives
        ],
    }


# ═════════════════════════════════════════════════════════════════════════════
# IDP
# ═════════════════════════════════════════════════════════════════════════════

def action_counts(goals: list[dict]) -> dict[str, int]:
    counts = {status.value: 0 for status in ActionStatus}
    for goal in goals:
        for action in goal.get("actions") or []:
            status = action.get("status")
            if status in counts:
                counts[status] += 1
    return counts


def idp_progress(goals: list[dict]) -> float:
    """completedActions / totalActions as a percentage; 0 with no actions."""
    total = sum(len(goal.get("actions") or []) for goal in goals)
    if total == 0:
        return 0.0
    completed = action_counts(goals)[ActionStatus.COMPLETED.value]
    return completed / total * 100.0


def idp_summary(content: dict) -> dict:
    goals = content.get("goals") or []
    counts = action_counts(goals)
    return {
        "goal_count": len(goals),
        "total_actions": sum(counts.values()),
        "completed_actions": counts[ActionStatus.COMPLETED.value],
        "status_counts": counts,
        "progress": idp_progress(goals),
    }


# ═════════════════════════════════════════════════════════════════════════════
# Kanban
# ═════════════════════════════════════════════════════════════════════════════

def tasks_per_column(columns: list[dict]) -> dict[str, int]:
    return {col.get("id"): len(col.get("tasks") or []) for col in columns}


def kanban_summary(content: dict) -> dict:
    columns = content.get("columns") or []
    per_column = tasks_per_column(columns)
    return {
        "column_count": len(columns),
        "total_tasks": sum(per_column.values()),
        "tasks_per_column": per_column,
    }


_SUMMARIZERS = {
    DocumentKind.KANBAN: kanban_summary,
    DocumentKind.SCORECARD: scorecard_summary,
    DocumentKind.IDP: idp_summary,
}


def summarize(kind: str | DocumentKind, content: dict) -> dict:
    """Display view for any document kind."""
    return _SUMMARIZERS[coerce_kind(kind)](content)
