# collabchat/api/channels/schemas.py
from marshmallow import Schema, fields, validate, EXCLUDE

from collabchat.core.constants import ChannelType, ChannelRole, NotificationPreference


class ChannelCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.Str(allow_none=True, validate=validate.Length(max=100))
    type = fields.Str(
        load_default=ChannelType.PUBLIC.value,
        validate=validate.OneOf([t.value for t in ChannelType]),
    )
    members = fields.List(fields.Str(), load_default=list)
    description = fields.Str(allow_none=True, validate=validate.Length(max=500))


class ChannelUpdateSchema(Schema):
    """Only the fields present in the request are applied"""

    class Meta:
        unknown = EXCLUDE

    name = fields.Str(validate=validate.Length(max=100))
    description = fields.Str(allow_none=True, validate=validate.Length(max=500))
    is_archived = fields.Bool()
    is_read_only = fields.Bool()


class ChannelMemberSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    user_id = fields.Str(required=True)
    role = fields.Str(
        load_default=ChannelRole.MEMBER.value,
        validate=validate.OneOf([r.value for r in ChannelRole]),
    )


class ChannelPreferencesSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    notification_preference = fields.Str(
        validate=validate.OneOf([p.value for p in NotificationPreference])
    )
    muted_until = fields.NaiveDateTime(allow_none=True)
