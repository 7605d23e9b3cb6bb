from copy import deepcopy
from typing import Any, Dict

from versioned_cms.extensions import db

META_FIELDS = (
    "version",
    "status",
    "created_at",
    "created_by",
    "updated_at",
    "updated_by",
    "published_at",
    "published_by",
)


class ContentDocument(db.Model):
    """
    The single live record stored at a document path.

    ``version`` doubles as SQLAlchemy's version counter: every UPDATE/DELETE is
    issued with ``WHERE version = <version read>``, so a commit based on a
    stale read matches no row and raises ``StaleDataError``.
    """
    __tablename__ = "content_documents"

    path = db.Column(db.String(512), primary_key=True)
    content = db.Column(db.JSON, nullable=False, default=dict)

    version = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="draft", index=True)
    # draft | published | archived

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_by = db.Column(db.String(128), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_by = db.Column(db.String(128), nullable=False)
    published_at = db.Column(db.DateTime(timezone=True), nullable=True)
    published_by = db.Column(db.String(128), nullable=True)

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": False,
    }

    def meta(self) -> Dict[str, Any]:
        return {field: getattr(self, field) for field in META_FIELDS}

    def replace(self, *, content: Dict[str, Any], meta: Dict[str, Any]) -> None:
        """Full replace: content and every metadata field are overwritten."""
        self.content = deepcopy(content)
        for field in META_FIELDS:
            setattr(self, field, meta.get(field))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "content": deepcopy(self.content),
            "_meta": self.meta(),
        }
