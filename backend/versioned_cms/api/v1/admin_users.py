from flask import abort, g, jsonify, request
from flask_jwt_extended import jwt_required

from versioned_cms.domain.rbac import UserRole, get_permissions_for_role
from versioned_cms.normalizers.admin_user import normalize_admin_user
from versioned_cms.services import get_cms
from versioned_cms.utils.decorators import actor_required
from versioned_cms.utils.responses import result_response
from . import v1_bp


@v1_bp.route("/admin-users/me", methods=["GET"])
@jwt_required()
@actor_required
def current_admin():
    user = g.current_user
    data = normalize_admin_user(user)
    data["permissions"] = sorted(get_permissions_for_role(user.role)) if user.is_active else []
    return jsonify({"data": data}), 200


@v1_bp.route("/admin-users/me/login", methods=["POST"])
@jwt_required()
@actor_required
def record_login():
    result = get_cms().admin_users.record_login(g.current_user.id)
    return result_response(result)


@v1_bp.route("/admin-users", methods=["GET"])
@jwt_required()
@actor_required
def list_admins():
    include_inactive = request.args.get("include_inactive", "1").lower() not in {"0", "false", "no"}
    result = get_cms().admin_users.list_admins(g.current_user, include_inactive=include_inactive)
    return result_response(result)


@v1_bp.route("/admin-users", methods=["POST"])
@jwt_required()
@actor_required
def create_admin():
    data = request.get_json(silent=True) or {}

    result = get_cms().admin_users.create_admin(
        g.current_user,
        user_id=data.get("user_id"),
        email=data.get("email"),
        role=data.get("role", UserRole.EDITOR),
        display_name=data.get("display_name"),
    )
    return result_response(result, success_status=201)


@v1_bp.route("/admin-users/<user_id>", methods=["PATCH"])
@jwt_required()
@actor_required
def update_admin(user_id):
    data = request.get_json(silent=True) or {}
    if "role" not in data and "is_active" not in data:
        abort(400, description="Nothing to update: expected role and/or is_active")

    service = get_cms().admin_users
    result = None

    if "role" in data:
        result = service.change_role(g.current_user, user_id, data["role"])
        if not result.success:
            return result_response(result)

    if "is_active" in data:
        result = service.set_active(g.current_user, user_id, bool(data["is_active"]))

    return result_response(result)


@v1_bp.route("/admin-users/<user_id>", methods=["DELETE"])
@jwt_required()
@actor_required
def remove_admin(user_id):
    result = get_cms().admin_users.remove_admin(g.current_user, user_id)
    return result_response(result)
