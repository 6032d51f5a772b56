from marshmallow import Schema, fields

from models.schemas.user import OwnerOutSchema


class VideoOutSchema(Schema):
    id = fields.String()
    video_file = fields.String()
    thumbnail = fields.String()
    title = fields.String()
    description = fields.String(allow_none=True)
    duration = fields.Float()
    views = fields.Integer()
    is_published = fields.Boolean()
    created_at = fields.DateTime()
    owner = fields.Nested(OwnerOutSchema)
