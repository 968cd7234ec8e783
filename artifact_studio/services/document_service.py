"""
Document Service — document records and the open-session registry.

Documents and their version rows live in the database. Open sessions
(canonical content, guard, pending debounced save, suggestions) live in
process memory, one per document id, each behind its own lock so
concurrent requests for the same document are applied one at a time.

Usage:
    from artifact_studio.services import document_service

    doc = document_service.create_document(kind="scorecard", title="Q3 review")
    with document_service.open_session(doc.id) as session:
        session.deliver("scorecard", raw)
"""

import json
import logging
import threading
import time
from contextlib import contextmanager

from flask import current_app

from artifact_studio.core.exceptions import ConflictError, NotFoundError, ValidationError
from artifact_studio.models import db
from artifact_studio.models.document import Document
from artifact_studio.services.content_schema import (
    coerce_kind,
    serialize_content,
    validate_content,
)
from artifact_studio.services.document_session import DocumentSession
from artifact_studio.services.document_store import SqlDocumentStore

logger = logging.getLogger(__name__)

# document_id -> (last_used, session, lock); idle entries are flushed and evicted
_sessions: dict[str, tuple[float, DocumentSession, threading.RLock]] = {}
_registry_lock = threading.Lock()


# ── Documents ─────────────────────────────────────────────────────────────────


def create_document(kind: str, title: str = "", document_id: str | None = None,
                    content=None) -> Document:
    """Create a document, optionally seeding version 0 with ``content``.

    ``content`` may be a dict or a JSON string; either way it must fit the
    shape for ``kind``.
    """
    kind = coerce_kind(kind).value
    if document_id is not None and db.session.get(Document, document_id) is not None:
        raise ConflictError(resource="Document", field="id", value=document_id)

    initial = None
    if content is not None:
        if isinstance(content, str):
            try:
                content = json.loads(content)
            except json.JSONDecodeError as exc:
                raise ValidationError("content is not valid JSON", details={"content": str(exc)}) from exc
        initial = serialize_content(validate_content(kind, content))

    doc = Document(kind=kind, title=title or "")
    if document_id is not None:
        doc.id = document_id
    db.session.add(doc)
    db.session.commit()
    logger.info("Created %s document %s", kind, doc.id, extra={"document_id": doc.id, "kind": kind})

    if initial is not None:
        SqlDocumentStore().save(doc.id, initial)
    return doc


def get_document(document_id: str) -> Document:
    doc = db.session.get(Document, document_id)
    if doc is None:
        raise NotFoundError(resource="Document", resource_id=document_id)
    return doc


def list_documents(kind: str | None = None) -> list[Document]:
    query = Document.query
    if kind:
        query = query.filter_by(kind=coerce_kind(kind).value)
    return query.order_by(Document.created_at.desc()).all()


def list_version_rows(document_id: str) -> list[dict]:
    """Stored version metadata, oldest first, without the content bodies."""
    doc = get_document(document_id)
    return [v.to_dict(include_content=False) for v in doc.versions]


def delete_document(document_id: str) -> None:
    doc = get_document(document_id)
    with _registry_lock:
        _sessions.pop(document_id, None)
    db.session.delete(doc)
    db.session.commit()
    logger.info("Deleted document %s", document_id, extra={"document_id": document_id})


# ── Sessions ──────────────────────────────────────────────────────────────────


def _evict_idle(now: float, keep: str) -> list[tuple[DocumentSession, threading.RLock]]:
    """Pop sessions unused for SESSION_IDLE_SECONDS. Caller holds _registry_lock."""
    idle_seconds = current_app.config.get("SESSION_IDLE_SECONDS", 1800)
    stale = [
        doc_id for doc_id, (last_used, _, _) in _sessions.items()
        if doc_id != keep and now - last_used >= idle_seconds
    ]
    return [_sessions.pop(doc_id)[1:] for doc_id in stale]


def _get_or_open(document_id: str) -> tuple[DocumentSession, threading.RLock]:
    now = time.monotonic()
    with _registry_lock:
        entry = _sessions.get(document_id)
        if entry is None:
            doc = get_document(document_id)
            session = DocumentSession(
                doc.id,
                doc.kind,
                SqlDocumentStore(),
                debounce_seconds=current_app.config.get("SAVE_DEBOUNCE_SECONDS", 2.0),
            ).open()
            entry = (now, session, threading.RLock())
        _, session, lock = entry
        _sessions[document_id] = (now, session, lock)
        evicted = _evict_idle(now, keep=document_id)

    for stale_session, stale_lock in evicted:
        with stale_lock:
            stale_session.flush()
        logger.info("Evicted idle session for document %s", stale_session.document_id,
                    extra={"document_id": stale_session.document_id})
    return session, lock


@contextmanager
def open_session(document_id: str):
    """Yield the document's session while holding its lock.

    Any debounced save whose quiet period has passed is written first.
    """
    session, lock = _get_or_open(document_id)
    with lock:
        session.poll()
        yield session


def close_session(document_id: str) -> bool:
    """Flush pending saves and forget the in-memory session."""
    with _registry_lock:
        entry = _sessions.pop(document_id, None)
    if entry is None:
        return False
    _, session, lock = entry
    with lock:
        session.flush()
    return True


def is_session_open(document_id: str) -> bool:
    with _registry_lock:
        return document_id in _sessions


def reset_sessions() -> None:
    """Drop every open session without saving (for testing)."""
    with _registry_lock:
        _sessions.clear()
