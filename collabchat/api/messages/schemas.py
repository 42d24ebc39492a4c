# collabchat/api/messages/schemas.py
from marshmallow import Schema, fields, validate, EXCLUDE


class MessageCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    channel_id = fields.Int(required=True, strict=False)
    content = fields.Str(required=True)
    parent_message_id = fields.Int(allow_none=True, load_default=None)


class MessageEditSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    content = fields.Str(required=True)


class MarkReadSchema(Schema):
    """Without last_message_id the whole channel is marked read"""

    class Meta:
        unknown = EXCLUDE

    channel_id = fields.Int(required=True)
    last_message_id = fields.Int(allow_none=True, load_default=None, validate=validate.Range(min=0))


class ReactionSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    emoji = fields.Str(required=True)
