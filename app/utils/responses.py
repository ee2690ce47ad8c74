from flask import jsonify


def ok(data=None, message="success", status=200):
    payload = {"status": "success", "message": message}
    if data is not None:
        payload["data"] = data
    return jsonify(payload), status


def error(message, status=400, code=None):
    return jsonify({
        "status": "error",
        "message": message,
        "code": code or status
    }), status


def validation_error_response(errors):
    return jsonify({
        "status": "error",
        "message": "Invalid request",
        "code": "validation_error",
        "errors": errors,
    }), 400


def internal_error_response():
    return error("An unexpected error occurred, please try again later", status=500)
