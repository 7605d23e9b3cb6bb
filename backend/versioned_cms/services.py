from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from flask import Flask, current_app

from versioned_cms.application.cms.admin_users import AdminUserService
from versioned_cms.application.cms.audit_logger import AuditLogger
from versioned_cms.application.cms.content_service import ContentService
from versioned_cms.application.cms.version_manager import VersionManager
from versioned_cms.errors import NotReady
from versioned_cms.store import DocumentStore
from versioned_cms.utils.tasks import PostCommitTasks


@dataclass
class CMSServices:
    store: DocumentStore
    tasks: PostCommitTasks
    audit_logger: AuditLogger
    version_manager: VersionManager
    content: ContentService
    admin_users: AdminUserService


def build_services(app: Flask) -> CMSServices:
    """Wires one instance of each service for ``app``; nothing is module-global."""
    executor = None
    if app.config.get("CMS_ASYNC_TASKS"):
        executor = ThreadPoolExecutor(
            max_workers=app.config.get("CMS_TASK_WORKERS", 2),
            thread_name_prefix="cms-tasks",
        )

    store = DocumentStore()
    tasks = PostCommitTasks(executor)
    audit_logger = AuditLogger(
        store,
        max_value_size=app.config["CMS_AUDIT_MAX_VALUE_SIZE"],
        page_size=app.config["CMS_AUDIT_PAGE_SIZE"],
    )
    version_manager = VersionManager(
        store,
        audit_logger,
        tasks,
        max_versions=app.config["CMS_MAX_VERSIONS"],
    )

    return CMSServices(
        store=store,
        tasks=tasks,
        audit_logger=audit_logger,
        version_manager=version_manager,
        content=ContentService(version_manager, audit_logger),
        admin_users=AdminUserService(store, audit_logger),
    )


def get_cms() -> CMSServices:
    services = current_app.extensions.get("cms")
    if services is None:
        raise NotReady("Content services are not initialized")
    return services
