from flask import jsonify


def api_response(data=None, message: str = "Success", status: int = 200):
    """Success envelope shared by every endpoint: {status, data, message, success}."""
    return jsonify(
        {
            "status": status,
            "data": data if data is not None else {},
            "message": message,
            "success": status < 400,
        }
    ), status
