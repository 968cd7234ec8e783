"""
Artifact Studio
Document domain models.

Models:
    - Document: A structured document (kanban, scorecard, idp) and its metadata
    - DocumentVersion: One persisted full-content snapshot; versions of a
      document are ordered by ``position``
"""

import hashlib
import uuid
from datetime import datetime, timezone

from artifact_studio.models import db


# ── Helpers ──────────────────────────────────────────────────────────────────

def compute_content_hash(text: str) -> str:
    """Compute SHA-256 hash of text for content equality checks."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


# ── Document ─────────────────────────────────────────────────────────────────

class Document(db.Model):
    """A structured document whose content lives in its version rows."""

    __tablename__ = "documents"

    id = db.Column(db.String(64), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = db.Column(db.String(300), nullable=False, default="")
    kind = db.Column(db.String(20), nullable=False, index=True, comment="kanban | scorecard | idp")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    versions = db.relationship(
        "DocumentVersion",
        backref="document",
        lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="DocumentVersion.position",
    )

    def latest_version(self):
        return self.versions.order_by(DocumentVersion.position.desc()).first()

    def to_dict(self):
        latest = self.latest_version()
        return {
            "id": self.id,
            "title": self.title,
            "kind": self.kind,
            "version_count": self.versions.count(),
            "content": latest.content if latest else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ── DocumentVersion ──────────────────────────────────────────────────────────

class DocumentVersion(db.Model):
    """
    Immutable full-content snapshot.

    ``position`` is 0-based and dense within a document; truncating history
    for a branch deletes every row after the branch point.
    """

    __tablename__ = "document_versions"
    __table_args__ = (
        db.UniqueConstraint("document_id", "position", name="uq_document_version_position"),
    )

    id = db.Column(db.Integer, primary_key=True)
    document_id = db.Column(
        db.String(64),
        db.ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = db.Column(db.Integer, nullable=False)
    content = db.Column(db.Text, nullable=False, default="")
    content_hash = db.Column(db.String(64), nullable=False, default="")
    debounced = db.Column(db.Boolean, default=False, comment="Written by a coalesced text-edit save")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self, include_content=True):
        data = {
            "id": self.id,
            "document_id": self.document_id,
            "position": self.position,
            "content_hash": self.content_hash,
            "debounced": self.debounced,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_content:
            data["content"] = self.content
        return data
