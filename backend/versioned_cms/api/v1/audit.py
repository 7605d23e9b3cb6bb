from flask import abort, g, request
from flask_jwt_extended import jwt_required
from dateutil.parser import parse

from versioned_cms.services import get_cms
from versioned_cms.utils.decorators import actor_required
from versioned_cms.utils.pagination import normalize_ts
from versioned_cms.utils.responses import result_response
from . import v1_bp

MAX_PAGE_SIZE = 100


def _date_arg(name):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return normalize_ts(parse(raw))
    except (ValueError, OverflowError):
        abort(400, description=f"Invalid {name}")


def _bool_arg(name):
    raw = request.args.get(name)
    if raw is None:
        return None
    return raw.strip().lower() in {"1", "true", "yes"}


@v1_bp.route("/audit-logs", methods=["GET"])
@jwt_required()
@actor_required
def list_audit_logs():
    limit = request.args.get("limit", type=int)
    if limit is not None:
        limit = max(1, min(limit, MAX_PAGE_SIZE))

    result = get_cms().content.query_audit_logs(
        g.current_user,
        user_id=request.args.get("user_id"),
        action=request.args.get("action"),
        resource_type=request.args.get("resource_type"),
        resource_id=request.args.get("resource_id"),
        success=_bool_arg("success"),
        start_date=_date_arg("start_date"),
        end_date=_date_arg("end_date"),
        limit=limit,
        cursor=request.args.get("cursor"),
    )
    return result_response(result)
