"""
Document store on top of Flask-SQLAlchemy.

Live documents are addressed by path and only mutated inside
``run_transaction``. Collections (version snapshots, audit logs) are
append-only tables written with ``add_to_collection``.
"""
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from versioned_cms.extensions import db
from versioned_cms.models.content_document import ContentDocument
from versioned_cms.utils.transaction import transactional

T = TypeVar("T")


class Transaction:
    """Transactional view handed to ``DocumentStore.run_transaction`` callbacks."""

    def __init__(self, session: Session):
        self._session = session

    def get(self, path: str) -> Optional[ContentDocument]:
        # Row lock where the database supports it; always refresh the identity map
        # so the version read is the committed one.
        return self._session.execute(
            select(ContentDocument)
            .where(ContentDocument.path == path)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def set(self, path: str, *, content: Dict[str, Any], meta: Dict[str, Any]) -> ContentDocument:
        document = self._session.get(ContentDocument, path)
        if document is None:
            document = ContentDocument()
            document.path = path
            self._session.add(document)

        document.replace(content=content, meta=meta)
        return document

    def delete(self, path: str) -> None:
        document = self._session.get(ContentDocument, path)
        if document is not None:
            self._session.delete(document)


class DocumentStore:
    def __init__(self, session: Optional[Session] = None):
        self._session = session

    @property
    def session(self) -> Session:
        return self._session if self._session is not None else db.session

    # -------------------------------------------------
    # Live documents
    # -------------------------------------------------

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        document = self.session.get(ContentDocument, path, populate_existing=True)
        return document.to_dict() if document is not None else None

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        """
        Run ``fn`` as one atomic unit: commit on return, roll back on any error.
        Store errors (stale version, duplicate insert) propagate unchanged.
        """
        with transactional(self.session) as session:
            return fn(Transaction(session))

    # -------------------------------------------------
    # Collections
    # -------------------------------------------------

    def add_to_collection(self, row: Any) -> str:
        with transactional(self.session) as session:
            session.add(row)
            session.flush()
            row_id = row.id
        return row_id

    def query_collection(
        self,
        model: Type[Any],
        *,
        filters: Optional[Dict[str, Any]] = None,
        conditions: Iterable[Any] = (),
        order_by: Sequence[Any] = (),
        limit: Optional[int] = None,
    ) -> list[Any]:
        stmt = select(model)

        for field, value in (filters or {}).items():
            stmt = stmt.where(getattr(model, field) == value)

        for condition in conditions:
            stmt = stmt.where(condition)

        if order_by:
            stmt = stmt.order_by(*order_by)

        if limit is not None:
            stmt = stmt.limit(limit)

        return list(self.session.scalars(stmt))

    def remove_from_collection(self, rows: Iterable[Any]) -> int:
        count = 0
        with transactional(self.session) as session:
            for row in rows:
                session.delete(row)
                count += 1
        return count
