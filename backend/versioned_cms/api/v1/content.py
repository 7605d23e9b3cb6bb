# versioned_cms/api/v1/content.py
from flask import abort, g, jsonify, request
from flask_jwt_extended import jwt_required

from versioned_cms.domain.rbac import Permission
from versioned_cms.errors import NotFound
from versioned_cms.normalizers.document import normalize_document
from versioned_cms.services import get_cms
from versioned_cms.utils.decorators import actor_required, permission_required
from versioned_cms.utils.optimistic_lock import expected_version_from_request
from versioned_cms.utils.responses import result_response
from . import v1_bp

MAX_HISTORY_LIMIT = 100


def _resolve(content_type):
    definition = get_cms().content.content_type(content_type)
    if definition is None:
        raise NotFound(f"Unknown content type: {content_type}")
    return definition


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


# ------------------------
# Live documents
# ------------------------

@v1_bp.route("/content/<content_type>", methods=["GET"])
@jwt_required()
@actor_required
@permission_required(Permission.CONTENT_READ)
def get_content(content_type):
    definition = _resolve(content_type)

    document = get_cms().content.get_content(definition.path)
    if document is None:
        raise NotFound(f"Content not found: {definition.path}")

    response = jsonify({"data": normalize_document(document)})
    response.headers["ETag"] = f'"{document["_meta"]["version"]}"'
    return response


@v1_bp.route("/content/<content_type>", methods=["PUT"])
@jwt_required()
@actor_required
def save_content(content_type):
    definition = _resolve(content_type)
    data = request.get_json(silent=True) or {}

    content = data.get("content")
    if not isinstance(content, dict):
        abort(400, description="content must be a JSON object")

    result = get_cms().content.save_content(
        definition.path,
        definition.key,
        content,
        user=g.current_user,
        expected_version=expected_version_from_request(data),
        publish=_flag(data.get("publish", False)),
        change_description=data.get("change_description"),
    )
    return result_response(result)


@v1_bp.route("/content/<content_type>", methods=["DELETE"])
@jwt_required()
@actor_required
def delete_content(content_type):
    definition = _resolve(content_type)

    result = get_cms().content.delete_content(
        definition.path,
        definition.key,
        user=g.current_user,
        hard_delete=_flag(request.args.get("hard", "0")),
    )
    return result_response(result)


@v1_bp.route("/content/<content_type>/restore", methods=["POST"])
@jwt_required()
@actor_required
def restore_content(content_type):
    definition = _resolve(content_type)
    result = get_cms().content.restore_content(definition.path, definition.key, user=g.current_user)
    return result_response(result)


@v1_bp.route("/content/<content_type>/publish", methods=["POST"])
@jwt_required()
@actor_required
def publish_content(content_type):
    definition = _resolve(content_type)
    result = get_cms().content.publish_content(definition.path, definition.key, user=g.current_user)
    return result_response(result)


@v1_bp.route("/content/<content_type>/unpublish", methods=["POST"])
@jwt_required()
@actor_required
def unpublish_content(content_type):
    definition = _resolve(content_type)
    result = get_cms().content.unpublish_content(definition.path, definition.key, user=g.current_user)
    return result_response(result)


# ------------------------
# Versions
# ------------------------

@v1_bp.route("/content/<content_type>/versions", methods=["GET"])
@jwt_required()
@actor_required
def version_history(content_type):
    definition = _resolve(content_type)
    limit = request.args.get("limit", 20, type=int)
    limit = max(1, min(limit, MAX_HISTORY_LIMIT))

    result = get_cms().content.get_version_history(definition.path, user=g.current_user, limit=limit)
    return result_response(result)


@v1_bp.route("/content/<content_type>/versions/<int:version>", methods=["GET"])
@jwt_required()
@actor_required
def get_version(content_type, version):
    definition = _resolve(content_type)
    result = get_cms().content.get_version(definition.path, version, user=g.current_user)
    return result_response(result)


@v1_bp.route("/content/<content_type>/versions/compare", methods=["GET"])
@jwt_required()
@actor_required
def compare_versions(content_type):
    definition = _resolve(content_type)

    version_a = request.args.get("a", type=int)
    version_b = request.args.get("b", type=int)
    if version_a is None or version_b is None:
        abort(400, description="Query parameters a and b must be integer versions")

    result = get_cms().content.compare_versions(definition.path, version_a, version_b, user=g.current_user)
    return result_response(result)


@v1_bp.route("/content/<content_type>/rollback/<int:version>", methods=["POST"])
@jwt_required()
@actor_required
def rollback_content(content_type, version):
    definition = _resolve(content_type)
    result = get_cms().content.rollback_content(
        definition.path,
        definition.key,
        user=g.current_user,
        target_version=version,
    )
    return result_response(result)
