"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT, one signing secret per token type
- JTI generation for token identifiers
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Dict, Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHashError

from flask import current_app

ph = PasswordHasher()

# token type -> (secret config key, lifetime config key)
TOKEN_SETTINGS = {
    "access": ("ACCESS_TOKEN_SECRET", "ACCESS_TOKEN_EXPIRES"),
    "refresh": ("REFRESH_TOKEN_SECRET", "REFRESH_TOKEN_EXPIRES"),
}


class TokenError(Exception):
    """Raised when a JWT fails signature, expiry or type checks."""


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def needs_rehash(password_hash: str) -> bool:
    return ph.check_needs_rehash(password_hash)


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _create_token(token_type: str, subject: str, claims: Dict[str, Any] | None = None) -> str:
    secret_key, lifetime_key = TOKEN_SETTINGS[token_type]
    now = _now()
    payload = {
        "iss": current_app.config.get("JWT_ISSUER", "channel-accounts-api"),
        "sub": str(subject),
        "iat": int(now.timestamp()),
        "exp": int((now + current_app.config[lifetime_key]).timestamp()),
        "type": token_type,
        "jti": generate_jti(),
    }
    payload.update(claims or {})
    return jwt.encode(payload, current_app.config[secret_key], algorithm=current_app.config["JWT_ALGORITHM"])


def create_access_token(subject: str, claims: Dict[str, Any] | None = None) -> str:
    """Short-lived token authorizing individual requests."""
    return _create_token("access", subject, claims)


def create_refresh_token(subject: str) -> str:
    """Long-lived token only good for minting new access tokens."""
    return _create_token("refresh", subject)


def decode_token(token: str, expected_type: str = "access") -> Dict[str, Any]:
    """
    Decode and validate a JWT. Raises TokenError on invalid signature/expired jwt
    expected type must be "access" or "refresh"; each is checked against its own secret.
    """
    if expected_type not in TOKEN_SETTINGS:
        raise ValueError(f"Unknown token type: {expected_type}")
    secret_key, _ = TOKEN_SETTINGS[expected_type]
    try:
        decoded = jwt.decode(
            token,
            current_app.config[secret_key],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token expired")
    except jwt.InvalidTokenError as exc:
        raise TokenError(f"Invalid token: {exc}")

    if decoded.get("type") != expected_type:
        raise TokenError("Wrong token type")
    return decoded
