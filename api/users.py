from __future__ import annotations

from flask import Blueprint, request, g
from sqlalchemy import select, func, exists
from sqlalchemy.orm import joinedload

from models import storage
from models.user import User
from models.video import Video
from models.subscription import Subscription
from models.schemas.user import UserUpdateSchema, UserOutSchema, ChannelProfileOutSchema
from models.schemas.video import VideoOutSchema
from api.errors import BadRequest, Conflict, NotFound
from api.responses import api_response
from utils.decorators import jwt_required
from utils.guards import enforce, require
from utils.media import get_media_host, upload_file, destroy_by_url

bp = Blueprint("users", __name__)

user_update_schema = UserUpdateSchema()
user_out_schema = UserOutSchema()
channel_profile_schema = ChannelProfileOutSchema()
videos_out_schema = VideoOutSchema(many=True)


def _email_taken(email: str | None, user_id: str) -> bool:
    if not email:
        return False
    session = storage.get_session()
    return session.query(User).filter(User.email == email, User.id != user_id).first() is not None


def _replace_image(field: str, label: str):
    file = request.files.get(field)
    enforce(lambda: require(bool(file and file.filename), BadRequest, f"{label.capitalize()} file is missing"))

    user = g.current_user
    media = get_media_host()
    old_url = getattr(user, field)
    new_url = upload_file(media, file, label)

    setattr(user, field, new_url)
    user.save()

    if old_url and old_url != new_url:
        destroy_by_url(media, old_url)
    return user


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return api_response(user_out_schema.dump(g.current_user), "User fetched successfully")


@bp.patch("/me")
@jwt_required()
def update_account_details():
    """
    Update fullname and/or email.
    ---
    tags:
      - Users
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
             fullname: { type: string }
             email: { type: string }
    responses:
      200:
        description: Updated
      400:
        description: Nothing to update
      409:
        description: Email already registered
    """
    data = user_update_schema.load(request.get_json(silent=True) or {})
    user = g.current_user

    enforce(
        lambda: require(bool(data.get("fullname") or data.get("email")), BadRequest,
                        "fullname or email is required"),
        lambda: require(not _email_taken(data.get("email"), user.id), Conflict,
                        "Email already registered"),
    )

    for key in ("fullname", "email"):
        if data.get(key):
            setattr(user, key, data[key])
    user.save()
    return api_response(user_out_schema.dump(user), "Account details updated successfully")


@bp.patch("/me/avatar")
@jwt_required()
def update_avatar():
    """
    Replace the avatar image; the previous one is deleted from the media host.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - multipart/form-data
    parameters:
      - { in: formData, name: avatar, type: file, required: true }
    responses:
      200:
        description: Updated
      400:
        description: File missing
      500:
        description: Upload failed
    """
    user = _replace_image("avatar", "avatar")
    return api_response(user_out_schema.dump(user), "Avatar image updated successfully")


@bp.patch("/me/cover-image")
@jwt_required()
def update_cover_image():
    """
    Replace the cover image; the previous one is deleted from the media host.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - multipart/form-data
    parameters:
      - { in: formData, name: cover_image, type: file, required: true }
    responses:
      200:
        description: Updated
    """
    user = _replace_image("cover_image", "cover image")
    return api_response(user_out_schema.dump(user), "Cover image updated successfully")


@bp.get("/c/<username>")
@jwt_required()
def channel_profile(username: str):
    """
    Channel profile with subscriber counts.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - { in: path, name: username, type: string, required: true }
    responses:
      200:
        description: OK
      404:
        description: Channel does not exist
    """
    enforce(lambda: require(bool(username and username.strip()), BadRequest, "username is missing"))

    viewer_id = g.current_user.id
    subscribers_count = (
        select(func.count(Subscription.id))
        .where(Subscription.channel_id == User.id)
        .scalar_subquery()
    )
    channels_subscribed_count = (
        select(func.count(Subscription.id))
        .where(Subscription.subscriber_id == User.id)
        .scalar_subquery()
    )
    is_subscribed = exists().where(
        Subscription.channel_id == User.id,
        Subscription.subscriber_id == viewer_id,
    )

    session = storage.get_session()
    row = (
        session.query(
            User,
            subscribers_count.label("subscribers_count"),
            channels_subscribed_count.label("channels_subscribed_count"),
            is_subscribed.label("is_subscribed"),
        )
        .filter(User.username == username.strip().lower())
        .first()
    )
    if row is None:
        raise NotFound("Channel does not exist")

    channel, subscribers, subscribed_to, subscribed = row
    profile = {
        "fullname": channel.fullname,
        "username": channel.username,
        "email": channel.email,
        "avatar": channel.avatar,
        "cover_image": channel.cover_image,
        "subscribers_count": subscribers or 0,
        "channels_subscribed_count": subscribed_to or 0,
        "is_subscribed": bool(subscribed),
    }
    return api_response(channel_profile_schema.dump(profile), "User channel fetched successfully")


@bp.get("/me/history")
@jwt_required()
def watch_history():
    """
    Watched videos, in history order, each with its owner's public fields.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
    """
    # Each video appears once, at its first position in the history
    video_ids = list(dict.fromkeys(g.current_user.watch_history or []))
    if not video_ids:
        return api_response([], "Watch history fetched successfully")

    session = storage.get_session()
    videos = (
        session.query(Video)
        .options(joinedload(Video.owner))
        .filter(Video.id.in_(video_ids))
        .all()
    )
    by_id = {video.id: video for video in videos}
    ordered = [by_id[vid] for vid in video_ids if vid in by_id]
    return api_response(videos_out_schema.dump(ordered), "Watch history fetched successfully")
