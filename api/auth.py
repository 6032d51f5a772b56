"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/logout
- POST /auth/refresh-token
- POST /auth/change-password

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and longer-lived refresh tokens (JWTs, separate secrets)
- Stores the single live refresh token on the user row so it can be rotated and revoked
- Sets both tokens as HttpOnly, Secure cookies as well as returning them in the body
"""
from __future__ import annotations

from flask import Blueprint, request, g, current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from models import storage
from models.user import User
from models.schemas.user import (
    UserRegisterSchema,
    UserLoginSchema,
    ChangePasswordSchema,
    UserOutSchema,
)
from api.errors import BadRequest, Conflict, Unauthorized, InternalFailure
from api.responses import api_response
from api.session_authority import (
    find_account,
    verify_credentials,
    issue_tokens,
    rotate_refresh_token,
    revoke_session,
    change_password as change_account_password,
)
from utils.decorators import jwt_required
from utils.guards import enforce, require
from utils.media import get_media_host, upload_file, destroy_by_url
from utils.security import hash_password

bp = Blueprint("auth", __name__)

user_register_schema = UserRegisterSchema()
user_login_schema = UserLoginSchema()
change_password_schema = ChangePasswordSchema()
user_out_schema = UserOutSchema()


def _cookie_options() -> dict:
    return {"httponly": True, "secure": current_app.config.get("COOKIE_SECURE", True)}


def set_session_cookies(resp, access_token: str, refresh_token: str):
    cfg = current_app.config
    options = _cookie_options()
    resp.set_cookie(cfg["ACCESS_COOKIE_NAME"], access_token,
                    max_age=int(cfg["ACCESS_TOKEN_EXPIRES"].total_seconds()), **options)
    resp.set_cookie(cfg["REFRESH_COOKIE_NAME"], refresh_token,
                    max_age=int(cfg["REFRESH_TOKEN_EXPIRES"].total_seconds()), **options)
    return resp


def clear_session_cookies(resp):
    cfg = current_app.config
    options = _cookie_options()
    resp.delete_cookie(cfg["ACCESS_COOKIE_NAME"], **options)
    resp.delete_cookie(cfg["REFRESH_COOKIE_NAME"], **options)
    return resp


def _username_or_email_taken(username: str, email: str) -> bool:
    session = storage.get_session()
    return session.query(User).filter(
        or_(User.username == username, User.email == email)
    ).first() is not None


@bp.post("/register")
def register():
    """
    Register a new user (multipart form with avatar upload).
    ---
    tags:
      - Auth
    consumes:
      - multipart/form-data
    parameters:
      - { in: formData, name: username, type: string, required: true }
      - { in: formData, name: fullname, type: string, required: true }
      - { in: formData, name: email, type: string, required: true }
      - { in: formData, name: password, type: string, required: true }
      - { in: formData, name: avatar, type: file, required: true }
      - { in: formData, name: cover_image, type: file, required: false }
    responses:
      201:
        description: Created
      400:
        description: Validation error
      409:
        description: Username or email already registered
    """
    data = user_register_schema.load(request.form.to_dict())
    avatar = request.files.get("avatar")
    cover_image = request.files.get("cover_image")

    enforce(
        lambda: require(bool(avatar and avatar.filename), BadRequest, "Avatar file is required"),
        lambda: require(not _username_or_email_taken(data["username"], data["email"]),
                        Conflict, "User with email or username already exists"),
    )

    media = get_media_host()
    avatar_url = upload_file(media, avatar, "avatar")
    cover_url = ""
    if cover_image and cover_image.filename:
        try:
            cover_url = upload_file(media, cover_image, "cover image")
        except InternalFailure:
            destroy_by_url(media, avatar_url)
            raise

    user = User(
        username=data["username"],
        email=data["email"],
        fullname=data["fullname"],
        password_hash=hash_password(data["password"]),
        avatar=avatar_url,
        cover_image=cover_url,
        watch_history=[],
    )
    storage.new(user)
    try:
        storage.save()
    except IntegrityError:
        # Lost a race with a concurrent registration; drop the orphaned uploads
        destroy_by_url(media, avatar_url)
        destroy_by_url(media, cover_url)
        raise

    return api_response(user_out_schema.dump(user), "User registered successfully", 201)


@bp.post("/login")
def login():
    """
    Login: return access_token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             username: { type: string }
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens, also set as cookies)
      401:
        description: Unauthorized
      404:
        description: User does not exist
    """
    payload = user_login_schema.load(request.get_json(silent=True) or {})
    username = payload.get("username")
    email = payload.get("email")
    password = payload.get("password")

    enforce(
        lambda: require(bool(username or email), BadRequest, "username or email is required"),
        lambda: require(bool(password), BadRequest, "password is required"),
    )

    user = find_account(username=username, email=email)
    if not verify_credentials(user, password):
        raise Unauthorized("Invalid user credentials")

    access_token, refresh_token = issue_tokens(user)

    resp, status = api_response(
        {
            "user": user_out_schema.dump(user),
            "access_token": access_token,
            "refresh_token": refresh_token,
        },
        "User logged in successfully",
    )
    return set_session_cookies(resp, access_token, refresh_token), status


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: forget the stored refresh token and clear cookies
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out
      401:
        description: Unauthorized
    """
    revoke_session(g.current_user.id)
    resp, status = api_response({}, "User logged out")
    return clear_session_cookies(resp), status


@bp.post("/refresh-token")
def refresh():
    """
    Use the refresh token to obtain new access and refresh tokens (rotation)
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         required: false
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: New token pair (also set as cookies)
      401:
        description: Missing, invalid, expired or already used refresh token
    """
    payload = request.get_json(silent=True)
    presented = request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"])
    if not presented and isinstance(payload, dict):
        presented = payload.get("refresh_token")

    _, access_token, refresh_token = rotate_refresh_token(presented)

    resp, status = api_response(
        {"access_token": access_token, "refresh_token": refresh_token},
        "Access token refreshed",
    )
    return set_session_cookies(resp, access_token, refresh_token), status


@bp.post("/change-password")
@jwt_required()
def change_password():
    """
    Change the current user's password
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             old_password: { type: string }
             new_password: { type: string }
    responses:
      200:
        description: Password changed
      401:
        description: Invalid old password
    """
    data = change_password_schema.load(request.get_json(silent=True) or {})
    change_account_password(g.current_user, data["old_password"], data["new_password"])
    return api_response({}, "Password changed successfully")
