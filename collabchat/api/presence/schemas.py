# collabchat/api/presence/schemas.py
from marshmallow import Schema, fields, validate, EXCLUDE

from collabchat.core.constants import PresenceStatus


class PresenceUpdateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    status = fields.Str(
        required=True, validate=validate.OneOf([s.value for s in PresenceStatus])
    )
    status_message = fields.Str(allow_none=True, load_default=None)
    current_channel_id = fields.Int(allow_none=True, load_default=None)


class TypingSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    channel_id = fields.Int(required=True)
    is_typing = fields.Bool(load_default=True)
