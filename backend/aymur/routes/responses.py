# Overview: Translates ActionResult values into JSON responses with HTTP status codes.

from flask import jsonify

from ..services.errors import ActionResult


STATUS_BY_CODE = {
    "validation_error": 400,
    "not_found": 404,
    "invalid_status": 409,
    "item_unavailable": 409,
    "duplicate_item": 409,
    "customer_mismatch": 422,
    "no_items": 422,
    "concurrent_modification": 409,
    "database_error": 500,
    "unexpected_error": 500,
}


def action_response(result: ActionResult, key: str, success_status: int = 200):
    if result.ok:
        return jsonify({key: result.data}), success_status
    body = {"error": result.error, "code": result.code}
    if result.details:
        body["details"] = result.details
    return jsonify(body), STATUS_BY_CODE.get(result.code, 500)
