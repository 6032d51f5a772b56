from collections.abc import Mapping

from marshmallow import Schema, fields, pre_load, validates, validate, ValidationError, EXCLUDE


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


def _norm_username(v):
    return v.strip().lower() if isinstance(v, str) else v


def _strip(v):
    return v.strip() if isinstance(v, str) else v


def _check_password(value):
    if not value or not value.strip():
        raise ValidationError("Password must not be blank.")


class UserRegisterSchema(Schema):
    """Text fields of the multipart registration form; files are handled separately."""
    class Meta:
        unknown = EXCLUDE

    username = fields.String(required=True, validate=validate.Length(min=1, max=64))
    fullname = fields.String(required=True, validate=validate.Length(min=1, max=255))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        if "email" in data:
            data["email"] = _norm_email(data["email"])
        if "username" in data:
            data["username"] = _norm_username(data["username"])
        if "fullname" in data:
            data["fullname"] = _strip(data["fullname"])
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        _check_password(value)


class UserLoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    username = fields.String(load_default=None)
    email = fields.String(load_default=None)
    password = fields.String(load_default=None, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        if data.get("email"):
            data["email"] = _norm_email(data["email"])
        if data.get("username"):
            data["username"] = _norm_username(data["username"])
        return data


class ChangePasswordSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    old_password = fields.String(required=True, load_only=True)
    new_password = fields.String(required=True, load_only=True)

    @validates("new_password")
    def validate_new_password(self, value, **kwargs):
        _check_password(value)


class UserUpdateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    fullname = fields.String(validate=validate.Length(min=1, max=255))
    email = fields.Email()

    @pre_load
    def normalize(self, data, **kwargs):
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        if data.get("email"):
            data["email"] = _norm_email(data["email"])
        if data.get("fullname"):
            data["fullname"] = _strip(data["fullname"])
        return data


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    username = fields.String()
    email = fields.String()
    fullname = fields.String()
    avatar = fields.String(allow_none=True)
    cover_image = fields.String(allow_none=True)
    watch_history = fields.List(fields.String())
    created_at = fields.DateTime()
    updated_at = fields.DateTime()


class ChannelProfileOutSchema(Schema):
    fullname = fields.String()
    username = fields.String()
    email = fields.String()
    avatar = fields.String(allow_none=True)
    cover_image = fields.String(allow_none=True)
    subscribers_count = fields.Integer()
    channels_subscribed_count = fields.Integer()
    is_subscribed = fields.Boolean()


class OwnerOutSchema(Schema):
    id = fields.String()
    fullname = fields.String()
    username = fields.String()
    avatar = fields.String(allow_none=True)
