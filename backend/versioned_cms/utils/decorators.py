from functools import wraps
from flask import g, jsonify
from flask_jwt_extended import get_jwt_identity

from versioned_cms.services import get_cms


def actor_required(fn):
    """
    Stacked under ``jwt_required()``: the JWT subject must be a known admin
    user id, exposed as ``g.current_user``.

    Inactive users are still loaded: the permission checks downstream report
    the deactivation with a proper reason.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        identity = get_jwt_identity()
        user = get_cms().admin_users.get_admin(identity)
        if user is None:
            return jsonify({"error": "UNAUTHORIZED", "message": "Unknown admin user"}), 401

        g.current_user = user
        return fn(*args, **kwargs)
    return wrapper


def permission_required(permission):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            # Raises InsufficientPermissions / NotReady, rendered by the error handlers
            get_cms().content.ensure_permission(g.current_user, permission)
            return fn(*args, **kwargs)
        return wrapper
    return decorator
