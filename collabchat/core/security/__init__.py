# collabchat/core/security/__init__.py
from werkzeug.security import generate_password_hash, check_password_hash
import secrets


class SecurityMixin:
    @property
    def password(self):
        raise AttributeError("password is not a readable attribute")

    @password.setter
    def password(self, password):
        self.password_hash = generate_password_hash(password)

    def verify_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)


def generate_session_token() -> str:
    """Opaque, unguessable session identifier"""
    return secrets.token_urlsafe(32)


__all__ = ["SecurityMixin", "generate_session_token"]
