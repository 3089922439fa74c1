from marshmallow import Schema, fields, pre_load, validates, ValidationError

MAX_PASSWORD_LENGTH = 72


def _strip(v):
    return v.strip() if isinstance(v, str) else v


class CredentialsSchema(Schema):
    """Body of /auth/login and /auth/register.

    Email syntax is checked by the session core (InvalidEmail), not here.
    """
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)

    def __init__(self, *args, min_password_length: int = 8, **kwargs):
        super().__init__(*args, **kwargs)
        self.min_password_length = min_password_length

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data, email=_strip(data["email"]))
        return data

    @validates("password")
    def validate_password(self, value, **kwargs):
        if len(value) < self.min_password_length:
            raise ValidationError(
                f"Password must be at least {self.min_password_length} characters long."
            )
        if len(value) > MAX_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_LENGTH} characters long.")


def _not_blank(value):
    if not value.strip():
        raise ValidationError("Must not be blank.")


class RefreshTokenSchema(Schema):
    refresh_token = fields.String(required=True, data_key="refreshToken", validate=_not_blank)


class TokenPairOutSchema(Schema):
    access_token = fields.String(data_key="accessToken")
    refresh_token = fields.String(data_key="refreshToken")


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    email = fields.String(allow_none=False)
    role = fields.String(allow_none=False)
    created_at = fields.DateTime(data_key="createdAt")
