"""
Document stores — the persistence collaborator behind version history.

Contract (per document id):
    load_versions(id)              -> ordered list of raw JSON snapshots
    save(id, raw, debounce=...)    -> append one snapshot; durable on return
    delete_versions_after(id, i)   -> drop every snapshot after position i

Failures raise PersistenceError. Immediate saves are synchronous, so two
immediate saves for the same document land in the order they were issued.

Implementations:
    - InMemoryDocumentStore: process-local lists (tests, scratch sessions)
    - SqlDocumentStore: Document / DocumentVersion rows via Flask-SQLAlchemy
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from sqlalchemy.exc import SQLAlchemyError

from artifact_studio.core.exceptions import PersistenceError
from artifact_studio.models import db
from artifact_studio.models.document import Document, DocumentVersion, compute_content_hash

logger = logging.getLogger(__name__)


# ── Store Abstract Base ───────────────────────────────────────────────────────

class DocumentStore(ABC):
    """Abstract interface for snapshot persistence."""

    @abstractmethod
    def load_versions(self, document_id: str) -> list[str]:
        """Return every stored snapshot of a document, oldest first."""
        ...

    @abstractmethod
    def save(self, document_id: str, raw: str, *, debounce: bool = False) -> None:
        """Append one snapshot."""
        ...

    @abstractmethod
    def delete_versions_after(self, document_id: str, index: int) -> None:
        """Keep snapshots ``0..index`` and delete the rest."""
        ...


# ── In-memory Store ───────────────────────────────────────────────────────────

class InMemoryDocumentStore(DocumentStore):
    """Keeps snapshots in a dict of lists. ``saves`` records every call in order."""

    def __init__(self, initial: dict[str, list[str]] | None = None):
        self._versions: dict[str, list[str]] = {k: list(v) for k, v in (initial or {}).items()}
        self.saves: list[tuple[str, str, bool]] = []

    def load_versions(self, document_id: str) -> list[str]:
        return list(self._versions.get(document_id, []))

    def save(self, document_id: str, raw: str, *, debounce: bool = False) -> None:
        self._versions.setdefault(document_id, []).append(raw)
        self.saves.append((document_id, raw, debounce))

    def delete_versions_after(self, document_id: str, index: int) -> None:
        versions = self._versions.get(document_id, [])
        del versions[index + 1:]


# ── SQL Store ─────────────────────────────────────────────────────────────────

class SqlDocumentStore(DocumentStore):
    """Persists snapshots as DocumentVersion rows; one commit per call."""

    def load_versions(self, document_id: str) -> list[str]:
        try:
            rows = (
                DocumentVersion.query
                .filter_by(document_id=document_id)
                .order_by(DocumentVersion.position.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(document_id, "load", str(exc)) from exc
        return [row.content for row in rows]

    def save(self, document_id: str, raw: str, *, debounce: bool = False) -> None:
        try:
            if db.session.get(Document, document_id) is None:
                raise PersistenceError(document_id, "save", "document does not exist")
            last = (
                db.session.query(db.func.max(DocumentVersion.position))
                .filter(DocumentVersion.document_id == document_id)
                .scalar()
            )
            version = DocumentVersion(
                document_id=document_id,
                position=0 if last is None else last + 1,
                content=raw,
                content_hash=compute_content_hash(raw),
                debounced=debounce,
            )
            db.session.add(version)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(document_id, "save", str(exc)) from exc
        logger.debug("Saved version %d of document %s (debounce=%s)",
                     version.position, document_id, debounce,
                     extra={"document_id": document_id})

    def delete_versions_after(self, document_id: str, index: int) -> None:
        try:
            removed = (
                DocumentVersion.query
                .filter(
                    DocumentVersion.document_id == document_id,
                    DocumentVersion.position > index,
                )
                .delete(synchronize_session=False)
            )
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(document_id, "truncate", str(exc)) from exc
        if removed:
            logger.info("Truncated %d version(s) after position %d of document %s",
                        removed, index, document_id, extra={"document_id": document_id})
