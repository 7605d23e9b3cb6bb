from versioned_cms.extensions import db
from .base import BaseModel


class AdminUser(BaseModel):
    """
    A person allowed into the admin console.

    ``id`` is the identity provider's user id, so it is assigned by the caller
    rather than generated. Rows are deactivated, never deleted.
    """
    __tablename__ = "admin_users"

    id = db.Column(db.String(128), primary_key=True)
    email = db.Column(db.String(320), unique=True, nullable=False)
    display_name = db.Column(db.String(200), nullable=True)

    role = db.Column(db.String(50), nullable=False, default="editor", index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_by = db.Column(db.String(128), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by = db.Column(db.String(128), nullable=True)
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "created_by": self.created_by,
            "updated_at": self.updated_at,
            "updated_by": self.updated_by,
            "last_login_at": self.last_login_at,
        }
