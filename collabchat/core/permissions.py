# collabchat/core/permissions.py
from functools import wraps
from collabchat.core.constants import UserRole
from collabchat.core.exceptions import PermissionDenied


def require_role(*roles):
    """Restrict a view to callers with one of the given global roles.

    Must sit below ``session_required`` so the resolved identity is passed in.
    """
    allowed = {role.value if isinstance(role, UserRole) else role for role in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            identity = kwargs.get("identity")
            if identity is None or identity.role not in allowed:
                raise PermissionDenied(
                    f"This action requires one of the roles: {', '.join(sorted(allowed))}"
                )
            return f(*args, **kwargs)

        return decorated_function

    return decorator


admin_required = require_role(UserRole.ADMIN)
