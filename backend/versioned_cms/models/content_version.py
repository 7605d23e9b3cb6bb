from sqlalchemy import event
from versioned_cms.extensions import db
from .base import BaseModel


class ContentVersion(BaseModel):
    """
    Immutable snapshot of a document's content at one version number.

    ``created_at``/``created_by`` describe whoever authored that version, not
    whoever later superseded it.
    """
    __tablename__ = "content_versions"

    document_path = db.Column(db.String(512), nullable=False)
    version = db.Column(db.Integer, nullable=False)
    content_snapshot = db.Column(db.JSON, nullable=False)

    created_by = db.Column(db.String(128), nullable=False)
    created_by_email = db.Column(db.String(320), nullable=True)
    change_description = db.Column(db.Text, nullable=True)

    is_rollback = db.Column(db.Boolean, nullable=False, default=False)
    rolled_back_from = db.Column(db.Integer, nullable=True)

    # Rows are written after the primary commit, so the write time is kept
    # apart from the authoring time above.
    recorded_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    __table_args__ = (
        db.Index("ix_content_version_path_version", "document_path", "version"),
    )

    @property
    def version_id(self):
        return self.id


@event.listens_for(ContentVersion, "before_update")
def prevent_version_mutation(mapper, connection, target):
    raise RuntimeError("Content versions are immutable")
