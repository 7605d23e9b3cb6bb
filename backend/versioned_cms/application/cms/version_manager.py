# versioned_cms/application/cms/version_manager.py
from typing import Any, Callable, Dict, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from versioned_cms.application.cms.audit_logger import AuditLogger
from versioned_cms.domain.lifecycle.content import ContentStatus, assert_content_transition, status_for_content
from versioned_cms.errors import CMSError, NotFound, StoreError, VersionConflict, VersionNotFound
from versioned_cms.models.admin_user import AdminUser
from versioned_cms.models.base import utc_now
from versioned_cms.models.content_version import ContentVersion
from versioned_cms.store import DocumentStore, Transaction
from versioned_cms.utils.tasks import PostCommitTasks

MAX_VERSIONS_TO_KEEP = 50

Document = Dict[str, Any]


class VersionManager:
    """
    Transactional engine behind every content write.

    The live document's ``version`` is the only concurrency token. Every write
    reads and replaces the document inside one store transaction; snapshots of
    the superseded state and retention pruning happen after commit as
    best-effort tasks.
    """

    def __init__(
        self,
        store: DocumentStore,
        audit_logger: AuditLogger,
        tasks: PostCommitTasks,
        *,
        max_versions: int = MAX_VERSIONS_TO_KEEP,
    ):
        self._store = store
        self._audit = audit_logger
        self._tasks = tasks
        self._max_versions = max_versions

    # -------------------------------------------------
    # Writes
    # -------------------------------------------------

    def save_content(
        self,
        path: str,
        content: Dict[str, Any],
        *,
        actor,
        expected_version: Optional[int] = None,
        publish: bool = False,
        change_description: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Dict[str, int]:
        """
        Replaces the live document at ``path`` with ``content``.

        Responsibilities:
        - optimistic lock check against ``expected_version``
        - version bump and metadata carry-over
        - snapshot of the superseded version
        - retention pruning
        """

        def apply(txn: Transaction) -> Tuple[Optional[Document], int]:
            # 1️⃣ Read current state under the transaction
            document = txn.get(path)
            current_version = document.version if document is not None else 0

            # 2️⃣ Optimistic lock
            if expected_version is not None and expected_version != current_version:
                raise VersionConflict(expected_version, current_version)

            # 3️⃣ Full replace
            return self._write_version(
                txn,
                path,
                document,
                content=content,
                actor=actor,
                publish=publish,
                status=status,
            )

        previous, new_version = self._run(apply, expected_version=expected_version)

        # 4️⃣ Post-commit history
        self._after_commit(path, previous, change_description=change_description)

        return {"version": new_version}

    def set_status(
        self,
        path: str,
        status: str,
        *,
        actor,
        expected_version: Optional[int] = None,
        change_description: Optional[str] = None,
        transform: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Moves the live document to ``status`` as a new version.

        ``transform`` derives the new content from the current content inside
        the same transaction. Returns the new version and the pre-image.
        """

        def apply(txn: Transaction) -> Tuple[Optional[Document], int]:
            document = txn.get(path)
            if document is None:
                raise NotFound(f"Content not found: {path}")

            if expected_version is not None and expected_version != document.version:
                raise VersionConflict(expected_version, document.version)

            content = document.content or {}
            if transform is not None:
                content = transform(dict(content))

            return self._write_version(
                txn,
                path,
                document,
                content=content,
                actor=actor,
                publish=status == ContentStatus.PUBLISHED,
                status=status,
            )

        previous, new_version = self._run(apply, expected_version=expected_version)
        self._after_commit(path, previous, change_description=change_description)

        return {"version": new_version, "previous": previous}

    def rollback_to_version(
        self,
        path: str,
        target_version: int,
        *,
        actor,
        resource_type: Optional[str] = None,
    ) -> Dict[str, int]:
        """
        Restores the content of snapshot ``target_version`` as a new version.

        History is never deleted: the pre-rollback state is snapshotted and
        flagged as a rollback.
        """

        # 1️⃣ Target snapshot
        target = self.get_version(path, target_version)
        if target is None:
            raise VersionNotFound(
                f"Version {target_version} not found",
                details={"version": target_version},
            )

        restored_content = target.content_snapshot or {}

        def apply(txn: Transaction) -> Tuple[Document, int]:
            # 2️⃣ Live document
            document = txn.get(path)
            if document is None:
                raise NotFound(f"Content not found: {path}")

            previous = document.to_dict()
            new_version = document.version + 1

            # 3️⃣ Restore content, bump version and updated_*
            meta = document.meta()
            meta.update(
                version=new_version,
                status=status_for_content(meta["status"], restored_content),
                updated_at=utc_now(),
                updated_by=actor.id,
            )
            txn.set(path, content=restored_content, meta=meta)

            return previous, new_version

        previous, new_version = self._run(apply)

        # 4️⃣ Snapshot the discarded state
        self._tasks.run(
            "snapshot",
            self._record_snapshot,
            path,
            previous,
            change_description=f"Rollback to version {target_version}",
            is_rollback=True,
            rolled_back_from=target_version,
        )
        self._tasks.submit("prune", self.prune_versions, path)

        # 5️⃣ Audit
        self._audit.log_content_rollback(
            actor,
            resource_type=resource_type,
            resource_path=path,
            previous_value=previous["content"],
            new_value=restored_content,
            from_version=previous["_meta"]["version"],
            to_version=target_version,
            success=True,
        )

        return {"version": new_version, "restored_version": target_version}

    def hard_delete(self, path: str) -> Document:
        """Physically removes the live document. Snapshots are kept."""

        def apply(txn: Transaction) -> Document:
            document = txn.get(path)
            if document is None:
                raise NotFound(f"Content not found: {path}")

            previous = document.to_dict()
            txn.delete(path)
            return previous

        return self._run(apply)

    # -------------------------------------------------
    # Reads
    # -------------------------------------------------

    def get_current_content(self, path: str) -> Optional[Document]:
        return self._store.get(path)

    def get_version_history(self, path: str, limit: int = 20) -> list[ContentVersion]:
        return self._store.query_collection(
            ContentVersion,
            filters={"document_path": path},
            order_by=(ContentVersion.version.desc(), ContentVersion.recorded_at.desc()),
            limit=limit,
        )

    def get_version(self, path: str, version: int) -> Optional[ContentVersion]:
        # A path recreated after a hard delete can hold the same number twice;
        # the newest recording wins.
        rows = self._store.query_collection(
            ContentVersion,
            filters={"document_path": path, "version": version},
            order_by=(ContentVersion.recorded_at.desc(),),
            limit=1,
        )
        return rows[0] if rows else None

    def compare_versions(self, path: str, version_a: int, version_b: int) -> Dict[str, Optional[ContentVersion]]:
        return {
            "version_a": self.get_version(path, version_a),
            "version_b": self.get_version(path, version_b),
        }

    # -------------------------------------------------
    # Retention
    # -------------------------------------------------

    def prune_versions(self, path: str) -> int:
        """Deletes snapshots beyond the ``max_versions`` newest for ``path``."""
        keep = self.get_version_history(path, limit=self._max_versions)
        if len(keep) < self._max_versions:
            return 0

        kept_ids = [row.id for row in keep]
        excess = self._store.query_collection(
            ContentVersion,
            filters={"document_path": path},
            conditions=(ContentVersion.id.notin_(kept_ids),),
        )
        if not excess:
            return 0

        removed = self._store.remove_from_collection(excess)
        current_app.logger.info("Pruned %s old versions of %s", removed, path)
        return removed

    # -------------------------------------------------
    # Internals
    # -------------------------------------------------

    def _write_version(
        self,
        txn: Transaction,
        path: str,
        document,
        *,
        content: Dict[str, Any],
        actor,
        publish: bool,
        status: Optional[str],
    ) -> Tuple[Optional[Document], int]:
        previous = document.to_dict() if document is not None else None
        prior = previous["_meta"] if previous is not None else {}
        current_version = prior.get("version", 0)

        if publish:
            next_status = ContentStatus.PUBLISHED
        elif status is not None:
            next_status = status
        else:
            next_status = status_for_content(prior.get("status") or ContentStatus.DRAFT, content)

        # Only explicit status moves are guarded; a content save replaces the whole document
        if status is not None and previous is not None:
            assert_content_transition(from_status=prior["status"], to_status=next_status)

        now = utc_now()
        meta = {
            "version": current_version + 1,
            "status": next_status,
            "created_at": prior.get("created_at") or now,
            "created_by": prior.get("created_by") or actor.id,
            "updated_at": now,
            "updated_by": actor.id,
            "published_at": now if publish else prior.get("published_at"),
            "published_by": actor.id if publish else prior.get("published_by"),
        }

        txn.set(path, content=content, meta=meta)
        return previous, current_version + 1

    def _after_commit(self, path: str, previous: Optional[Document], *, change_description: Optional[str]) -> None:
        if previous is None:
            return

        self._tasks.run(
            "snapshot",
            self._record_snapshot,
            path,
            previous,
            change_description=change_description,
        )
        self._tasks.submit("prune", self.prune_versions, path)

    def _record_snapshot(
        self,
        path: str,
        previous: Document,
        *,
        change_description: Optional[str] = None,
        is_rollback: bool = False,
        rolled_back_from: Optional[int] = None,
    ) -> str:
        meta = previous["_meta"]
        author_id = meta["updated_by"]

        snapshot = ContentVersion()
        snapshot.document_path = path
        snapshot.version = meta["version"]
        snapshot.content_snapshot = previous["content"]
        snapshot.created_at = meta["updated_at"]
        snapshot.created_by = author_id
        snapshot.created_by_email = self._email_for(author_id)
        snapshot.change_description = change_description
        snapshot.is_rollback = is_rollback
        snapshot.rolled_back_from = rolled_back_from
        snapshot.recorded_at = utc_now()

        return self._store.add_to_collection(snapshot)

    def _email_for(self, user_id: str) -> Optional[str]:
        author = self._store.session.get(AdminUser, user_id)
        return author.email if author is not None else None

    def _run(self, fn: Callable[[Transaction], Any], *, expected_version: Optional[int] = None) -> Any:
        """Runs ``fn`` in a store transaction and maps store failures onto the error taxonomy."""
        try:
            return self._store.run_transaction(fn)
        except CMSError:
            raise
        except (StaleDataError, IntegrityError) as exc:
            current_app.logger.info("Concurrent write lost the race: %s", exc)
            raise VersionConflict(
                expected_version,
                None,
                message="Version conflict: the document was modified by another save. Please refresh and try again.",
            ) from exc
        except SQLAlchemyError as exc:
            current_app.logger.error("Content store failure: %s", exc)
            raise StoreError("Failed to write content") from exc
