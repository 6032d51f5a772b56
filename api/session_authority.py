"""
Session lifecycle for user accounts.

- verify_credentials / find_account: password check against the Argon2 hash
- issue_tokens: mint an access/refresh pair and store the refresh token
- rotate_refresh_token: trade the stored refresh token for a fresh pair
- revoke_session: forget the stored refresh token (logout)
- change_password: re-verify the old password before storing a new hash

Only this module writes User.refresh_token. Writes go through
storage.update(), a single UPDATE statement; rotation passes the presented
token as the expected old value so two racing rotations cannot both win.
"""
from __future__ import annotations

import hmac
import logging
from typing import Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from models import storage
from models.user import User
from api.errors import Unauthorized, NotFound, InternalFailure
from utils.security import (
    hash_password,
    verify_password,
    needs_rehash,
    create_access_token,
    create_refresh_token,
    decode_token,
    TokenError,
)

logger = logging.getLogger(__name__)

TOKEN_GENERATION_FAILED = "Something went wrong while generating refresh and access token"
REFRESH_TOKEN_REUSED = "Refresh token is expired or used"


def find_account(username: Optional[str] = None, email: Optional[str] = None) -> User:
    """Look up by username or email (either may match); raise NotFound otherwise."""
    conditions = []
    if username:
        conditions.append(User.username == username.strip().lower())
    if email:
        conditions.append(User.email == email.strip().lower())
    if not conditions:
        raise NotFound("user does not exist")
    user = storage.get_session().query(User).filter(or_(*conditions)).first()
    if user is None:
        raise NotFound("user does not exist")
    return user


def verify_credentials(user: User, password: str) -> bool:
    """False on mismatch. On a match, upgrade hashes made with outdated Argon2 parameters."""
    if not password or not verify_password(password, user.password_hash):
        return False
    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        user.save()
    return True


def _mint_pair(user: User) -> Tuple[str, str]:
    access_token = create_access_token(
        subject=user.id,
        claims={"username": user.username, "email": user.email, "fullname": user.fullname},
    )
    refresh_token = create_refresh_token(subject=user.id)
    return access_token, refresh_token


def issue_tokens(user: User) -> Tuple[str, str]:
    """Mint a pair and store the refresh token, overwriting any earlier one."""
    access_token, refresh_token = _mint_pair(user)
    try:
        stored = storage.update(User, user.id, {"refresh_token": refresh_token})
    except SQLAlchemyError:
        logger.exception("Persisting refresh token for user %s failed", user.id)
        raise InternalFailure(TOKEN_GENERATION_FAILED)
    if not stored:
        logger.error("Persisting refresh token for user %s updated no rows", user.id)
        raise InternalFailure(TOKEN_GENERATION_FAILED)
    logger.info("Issued session tokens for user %s", user.id)
    return access_token, refresh_token


def rotate_refresh_token(presented: Optional[str]) -> Tuple[User, str, str]:
    """
    Exchange the currently stored refresh token for a new pair.

    Every rejection is Unauthorized (401); only the message says why.
    """
    if not presented:
        raise Unauthorized("Unauthorized request")

    try:
        decoded = decode_token(presented, expected_type="refresh")
    except TokenError as exc:
        raise Unauthorized(str(exc))

    user = storage.get(User, decoded.get("sub"))
    if user is None:
        raise Unauthorized("Invalid refresh token")

    stored = user.refresh_token or ""
    if not hmac.compare_digest(stored.encode("utf-8"), presented.encode("utf-8")):
        logger.warning("Rejected stale or reused refresh token for user %s", user.id)
        raise Unauthorized(REFRESH_TOKEN_REUSED)

    access_token, refresh_token = _mint_pair(user)
    try:
        swapped = storage.update(
            User, user.id,
            {"refresh_token": refresh_token},
            expected={"refresh_token": presented},
        )
    except SQLAlchemyError:
        logger.exception("Rotating refresh token for user %s failed", user.id)
        raise InternalFailure(TOKEN_GENERATION_FAILED)
    if not swapped:
        # Another request rotated this token between our read and write
        logger.warning("Lost refresh token rotation race for user %s", user.id)
        raise Unauthorized(REFRESH_TOKEN_REUSED)

    logger.info("Rotated refresh token for user %s", user.id)
    return user, access_token, refresh_token


def revoke_session(user_id: str) -> None:
    """Clear the stored refresh token. Revoking twice is fine."""
    try:
        storage.update(User, user_id, {"refresh_token": None})
    except SQLAlchemyError:
        logger.exception("Revoking session for user %s failed", user_id)
        raise InternalFailure("Something went wrong while logging out")
    logger.info("Revoked session for user %s", user_id)


def change_password(user: User, old_password: str, new_password: str) -> None:
    # The stored refresh token is left alone; other sessions stay valid
    if not verify_password(old_password, user.password_hash):
        raise Unauthorized("Invalid old password")
    user.password_hash = hash_password(new_password)
    user.save()
    logger.info("Password changed for user %s", user.id)
