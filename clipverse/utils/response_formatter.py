from flask import jsonify


def success_response(payload=None, message=None, status=200, pagination=None):
    resp = {"success": True}
    if payload is not None:
        resp.update(payload if isinstance(payload, dict) else {"data": payload})
    if pagination is not None:
        resp["pagination"] = pagination
    if message:
        resp["message"] = message
    return jsonify(resp), status


def error_response(code, message, details=None, status=400):
    return jsonify({"error": {"code": code, "message": message, "details": details or {}}}), status


def service_error_response(exc):
    """Render a ``ServiceError`` with the status its class declares."""
    return error_response(exc.code, exc.message, details=exc.details, status=exc.status)
