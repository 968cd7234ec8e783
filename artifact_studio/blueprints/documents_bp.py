"""
Documents Blueprint — structured document editing API.

Endpoints:
    GET    /api/v1/documents                                   — list documents
    POST   /api/v1/documents                                   — create document
    GET    /api/v1/documents/<id>                              — session view (content, metrics, versions)
    DELETE /api/v1/documents/<id>                              — delete document and history

    POST   /api/v1/documents/<id>/deliver                      — ingest a generation payload
    GET    /api/v1/documents/<id>/metrics                      — derived metrics only
    GET    /api/v1/documents/<id>/export                       — content as pretty JSON text
    POST   /api/v1/documents/<id>/flush                        — write pending debounced save
    POST   /api/v1/documents/<id>/close                        — flush and release the open session
    POST   /api/v1/documents/<id>/retry-save                   — re-attempt a failed save

    PATCH  /api/v1/documents/<id>/fields                       — edit one field (debounced)
    POST   /api/v1/documents/<id>/columns/<cid>/tasks          — add task
    DELETE /api/v1/documents/<id>/columns/<cid>/tasks/<tid>    — delete task
    POST   /api/v1/documents/<id>/tasks/<tid>/move             — move task between columns
    POST   /api/v1/documents/<id>/perspectives/<pid>/kpis      — add KPI
    DELETE /api/v1/documents/<id>/perspectives/<pid>/kpis/<kid> — delete KPI
    POST   /api/v1/documents/<id>/goals                        — add goal
    DELETE /api/v1/documents/<id>/goals/<gid>                  — delete goal
    POST   /api/v1/documents/<id>/goals/<gid>/actions          — add action
    DELETE /api/v1/documents/<id>/goals/<gid>/actions/<aid>    — delete action
    POST   /api/v1/documents/<id>/actions/<aid>/toggle         — cycle action status

    GET    /api/v1/documents/<id>/suggestions                  — list suggestions
    POST   /api/v1/documents/<id>/suggestions                  — deliver a suggestion
    POST   /api/v1/documents/<id>/suggestions/<sid>/accept     — apply and resolve
    POST   /api/v1/documents/<id>/suggestions/<sid>/reject     — resolve without applying

    GET    /api/v1/documents/<id>/versions                     — version list and cursor
    POST   /api/v1/documents/<id>/versions/<prev|next>         — move the cursor

Layer contract:
    - No ORM calls here; document records go through document_service.
    - Every mutation runs inside document_service.open_session().
"""

import logging

from flask import Blueprint, Response, jsonify, request
from werkzeug.exceptions import HTTPException

from artifact_studio.core.exceptions import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from artifact_studio.services import document_service
from artifact_studio.utils.errors import E, api_error

logger = logging.getLogger(__name__)

documents_bp = Blueprint("documents", __name__, url_prefix="/api/v1/documents")


# ── Error handlers ────────────────────────────────────────────────────────────


@documents_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, str(error))


@documents_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_INVALID, str(error), details=error.details)


@documents_bp.errorhandler(ConflictError)
def _handle_conflict(error: ConflictError):
    return api_error(E.CONFLICT_DUPLICATE, str(error))


@documents_bp.errorhandler(PersistenceError)
def _handle_persistence(error: PersistenceError):
    logger.error("Persistence failure: %s", error, extra={"document_id": error.document_id})
    return api_error(E.PERSISTENCE, "Document storage is unavailable")


@documents_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    if isinstance(error, HTTPException):
        return error
    logger.exception("Unexpected error in documents_bp endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error")


# ── Helpers ───────────────────────────────────────────────────────────────────


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _session_view(session) -> dict:
    data = session.to_dict()
    data["notifications"] = session.drain_notifications()
    return data


def _edit(document_id: str, op):
    """Run ``op(session)`` under the session lock and return the session view."""
    with document_service.open_session(document_id) as session:
        op(session)
        return jsonify(_session_view(session)), 200


# ── Documents ─────────────────────────────────────────────────────────────────


@documents_bp.route("", methods=["GET"])
def list_documents():
    docs = document_service.list_documents(kind=request.args.get("kind"))
    return jsonify([d.to_dict() for d in docs]), 200


@documents_bp.route("", methods=["POST"])
def create_document():
    data = _body()
    if not data.get("kind"):
        return api_error(E.VALIDATION_REQUIRED, "kind is required")
    doc = document_service.create_document(
        kind=data["kind"],
        title=data.get("title", ""),
        document_id=data.get("id"),
        content=data.get("content"),
    )
    return jsonify(doc.to_dict()), 201


@documents_bp.route("/<document_id>", methods=["GET"])
def get_document(document_id):
    doc = document_service.get_document(document_id)
    with document_service.open_session(document_id) as session:
        view = _session_view(session)
    view["title"] = doc.title
    return jsonify(view), 200


@documents_bp.route("/<document_id>", methods=["DELETE"])
def delete_document(document_id):
    document_service.delete_document(document_id)
    return jsonify({"deleted": True}), 200


# ── Ingest & session utilities ────────────────────────────────────────────────


@documents_bp.route("/<document_id>/deliver", methods=["POST"])
def deliver(document_id):
    data = _body()
    raw = data.get("raw")
    if not isinstance(raw, str):
        return api_error(E.VALIDATION_REQUIRED, "raw (string) is required")
    with document_service.open_session(document_id) as session:
        outcome = session.deliver(data.get("kind") or session.kind, raw,
                                  is_final=bool(data.get("is_final", False)))
        view = _session_view(session)
    return jsonify({"outcome": outcome.value, "document": view}), 200


@documents_bp.route("/<document_id>/metrics", methods=["GET"])
def metrics(document_id):
    with document_service.open_session(document_id) as session:
        return jsonify(session.metrics()), 200


@documents_bp.route("/<document_id>/export", methods=["GET"])
def export_text(document_id):
    with document_service.open_session(document_id) as session:
        text = session.copy_as_text()
    return Response(text, mimetype="text/plain")


@documents_bp.route("/<document_id>/flush", methods=["POST"])
def flush(document_id):
    with document_service.open_session(document_id) as session:
        written = session.flush()
        return jsonify({"written": written, "document": _session_view(session)}), 200


@documents_bp.route("/<document_id>/close", methods=["POST"])
def close_session(document_id):
    document_service.get_document(document_id)
    closed = document_service.close_session(document_id)
    return jsonify({"closed": closed}), 200


@documents_bp.route("/<document_id>/retry-save", methods=["POST"])
def retry_save(document_id):
    with document_service.open_session(document_id) as session:
        saved = session.retry_save()
        return jsonify({"saved": saved, "document": _session_view(session)}), 200


# ── Edits ─────────────────────────────────────────────────────────────────────


@documents_bp.route("/<document_id>/fields", methods=["PATCH"])
def edit_field(document_id):
    data = _body()
    if not data.get("path"):
        return api_error(E.VALIDATION_REQUIRED, "path is required")
    if "value" not in data:
        return api_error(E.VALIDATION_REQUIRED, "value is required")
    return _edit(document_id, lambda s: s.edit_field(data["path"], data["value"]))


@documents_bp.route("/<document_id>/columns/<column_id>/tasks", methods=["POST"])
def add_task(document_id, column_id):
    return _edit(document_id, lambda s: s.add_task(column_id))


@documents_bp.route("/<document_id>/columns/<column_id>/tasks/<task_id>", methods=["DELETE"])
def delete_task(document_id, column_id, task_id):
    return _edit(document_id, lambda s: s.delete_task(column_id, task_id))


@documents_bp.route("/<document_id>/tasks/<task_id>/move", methods=["POST"])
def move_task(document_id, task_id):
    data = _body()
    missing = [k for k in ("from_column", "to_column") if not data.get(k)]
    if missing:
        return api_error(E.VALIDATION_REQUIRED, f"{', '.join(missing)} required")
    return _edit(document_id, lambda s: s.move_task(task_id, data["from_column"], data["to_column"]))


@documents_bp.route("/<document_id>/perspectives/<perspective_id>/kpis", methods=["POST"])
def add_kpi(document_id, perspective_id):
    kpi = _body().get("kpi")
    return _edit(document_id, lambda s: s.add_kpi(perspective_id, kpi))


@documents_bp.route("/<document_id>/perspectives/<perspective_id>/kpis/<kpi_id>", methods=["DELETE"])
def delete_kpi(document_id, perspective_id, kpi_id):
    return _edit(document_id, lambda s: s.delete_kpi(perspective_id, kpi_id))


@documents_bp.route("/<document_id>/goals", methods=["POST"])
def add_goal(document_id):
    data = _body()
    return _edit(document_id, lambda s: s.add_goal(data.get("goal") or "New Goal",
                                                    data.get("rationale") or ""))


@documents_bp.route("/<document_id>/goals/<goal_id>", methods=["DELETE"])
def delete_goal(document_id, goal_id):
    return _edit(document_id, lambda s: s.delete_goal(goal_id))


@documents_bp.route("/<document_id>/goals/<goal_id>/actions", methods=["POST"])
def add_action(document_id, goal_id):
    action = _body().get("action")
    return _edit(document_id, lambda s: s.add_action(goal_id, action))


@documents_bp.route("/<document_id>/goals/<goal_id>/actions/<action_id>", methods=["DELETE"])
def delete_action(document_id, goal_id, action_id):
    return _edit(document_id, lambda s: s.delete_action(goal_id, action_id))


@documents_bp.route("/<document_id>/actions/<action_id>/toggle", methods=["POST"])
def toggle_status(document_id, action_id):
    goal_id = _body().get("goal_id")
    return _edit(document_id, lambda s: s.toggle_status(action_id, goal_id))


# ── Suggestions ───────────────────────────────────────────────────────────────


@documents_bp.route("/<document_id>/suggestions", methods=["GET"])
def list_suggestions(document_id):
    include_resolved = request.args.get("include_resolved", "true").lower() != "false"
    with document_service.open_session(document_id) as session:
        return jsonify(session.suggestions.to_list(include_resolved=include_resolved)), 200


@documents_bp.route("/<document_id>/suggestions", methods=["POST"])
def deliver_suggestion(document_id):
    data = _body()
    data.setdefault("documentId", document_id)
    with document_service.open_session(document_id) as session:
        delivered = session.deliver_suggestion(data)
    if delivered is None:
        return jsonify({"duplicate": True}), 200
    return jsonify(delivered), 201


@documents_bp.route("/<document_id>/suggestions/<suggestion_id>/accept", methods=["POST"])
def accept_suggestion(document_id, suggestion_id):
    return _edit(document_id, lambda s: s.accept_suggestion(suggestion_id))


@documents_bp.route("/<document_id>/suggestions/<suggestion_id>/reject", methods=["POST"])
def reject_suggestion(document_id, suggestion_id):
    with document_service.open_session(document_id) as session:
        changed = session.reject_suggestion(suggestion_id)
        return jsonify({"rejected": changed, "suggestion_id": suggestion_id}), 200


# ── Versions ──────────────────────────────────────────────────────────────────


@documents_bp.route("/<document_id>/versions", methods=["GET"])
def list_versions(document_id):
    with document_service.open_session(document_id) as session:
        info = session.version_info()
    info["versions"] = document_service.list_version_rows(document_id)
    return jsonify(info), 200


@documents_bp.route("/<document_id>/versions/<direction>", methods=["POST"])
def go_to_version(document_id, direction):
    return _edit(document_id, lambda s: s.go_to_version(direction))
