from versioned_cms.models.admin_user import AdminUser


def normalize_admin_user(user: AdminUser):
    data = user.to_dict()
    for field in ("created_at", "updated_at", "last_login_at"):
        if data[field] is not None:
            data[field] = data[field].isoformat()
    return data
