from flask import jsonify

from versioned_cms.domain.results import OperationResult
from versioned_cms.errors import STATUS_BY_CODE


def result_response(result: OperationResult, success_status: int = 200):
    """Renders an ``OperationResult`` using the same error shape as ``CMSError``."""
    if result.success:
        return jsonify({"data": result.data}), success_status

    payload = {"error": result.error_code, "message": result.error}
    if result.details:
        payload["details"] = result.details
    return jsonify(payload), STATUS_BY_CODE.get(result.error_code, 500)
