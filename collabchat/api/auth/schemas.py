# collabchat/api/auth/schemas.py
from marshmallow import Schema, fields, validate, EXCLUDE


class LoginSchema(Schema):
    """Credentials posted to the login endpoint"""

    class Meta:
        unknown = EXCLUDE

    email = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    password = fields.Str(required=True, validate=validate.Length(min=1))


class TenantSwitchSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    tenant_id = fields.Str(required=True, validate=validate.Length(min=1, max=36))
