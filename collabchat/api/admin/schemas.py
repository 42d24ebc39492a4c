# collabchat/api/admin/schemas.py
from marshmallow import Schema, fields, validate, EXCLUDE

from collabchat.core.constants import UserRole, UserStatus, TenantStatus


class UserCreateSchema(Schema):
    """First tenant in the list becomes the primary one"""

    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True)
    password = fields.Str(required=True, validate=validate.Length(min=8))
    display_name = fields.Str(allow_none=True, validate=validate.Length(max=200))
    role = fields.Str(
        load_default=UserRole.STANDARD_USER.value,
        validate=validate.OneOf([r.value for r in UserRole]),
    )
    status = fields.Str(
        load_default=UserStatus.ACTIVE.value,
        validate=validate.OneOf([s.value for s in UserStatus]),
    )
    tenant_ids = fields.List(fields.Str(), load_default=list)


class UserUpdateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    display_name = fields.Str(allow_none=True, validate=validate.Length(max=200))
    role = fields.Str(validate=validate.OneOf([r.value for r in UserRole]))
    status = fields.Str(validate=validate.OneOf([s.value for s in UserStatus]))


class TenantCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    code = fields.Str(
        required=True,
        validate=[validate.Length(min=2, max=50), validate.Regexp(r"^[a-z0-9][a-z0-9_-]*$")],
    )
    name = fields.Str(required=True, validate=validate.Length(min=1, max=100))


class TenantUpdateSchema(Schema):
    """The tenant code is immutable"""

    class Meta:
        unknown = EXCLUDE

    name = fields.Str(validate=validate.Length(min=1, max=100))
    status = fields.Str(validate=validate.OneOf([s.value for s in TenantStatus]))


class TenantMemberSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    user_id = fields.Str(required=True)
    is_primary = fields.Bool(load_default=False)
