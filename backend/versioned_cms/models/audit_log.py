from sqlalchemy import event
from versioned_cms.extensions import db
from .base import new_id


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    __table_args__ = (
        db.Index("ix_audit_cursor", "timestamp", "id"),
        db.Index("ix_audit_user_action", "user_id", "action"),
        db.Index("ix_audit_resource", "resource_type", "resource_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    action = db.Column(db.String(50), nullable=False, index=True)

    user_id = db.Column(db.String(128), nullable=False, index=True)
    user_email = db.Column(db.String(320), nullable=True)
    user_role = db.Column(db.String(50), nullable=True)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    resource_type = db.Column(db.String(100), nullable=True)
    resource_id = db.Column(db.String(512), nullable=True)
    resource_path = db.Column(db.String(512), nullable=True)

    previous_value = db.Column(db.JSON, nullable=True)
    new_value = db.Column(db.JSON, nullable=True)

    success = db.Column(db.Boolean, nullable=False, index=True)
    error_message = db.Column(db.Text, nullable=True)

    # "metadata" is reserved on declarative classes
    extra = db.Column("metadata", db.JSON, nullable=True)


@event.listens_for(AuditLog, 'before_update')
@event.listens_for(AuditLog, 'before_delete')
def prevent_audit_mutation(mapper, connection, target):
    raise RuntimeError("Audit logs are immutable")
