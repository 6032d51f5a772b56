from __future__ import annotations
from functools import wraps
from flask import request, g, current_app
from utils.security import decode_token, TokenError
from api.errors import Unauthorized
from models import storage
from models.user import User


def _access_token_from_request() -> str | None:
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return request.cookies.get(current_app.config["ACCESS_COOKIE_NAME"]) or None


def jwt_required():
    """Resolve the access token (Bearer header or cookie) to g.current_user."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = _access_token_from_request()
            if not token:
                raise Unauthorized("Unauthorized request")
            try:
                decoded = decode_token(token, expected_type="access")
            except TokenError as e:
                raise Unauthorized(str(e))

            user = storage.get(User, decoded.get("sub"))
            if not user:
                raise Unauthorized("Invalid access token")
            g.current_user = user
            return fn(*args, **kwargs)

        return wrapper

    return decorator
