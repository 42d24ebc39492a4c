class BaseAPIException(Exception):
    """Base exception class for API errors"""

    error_code = "api_error"

    def __init__(self, message, status_code=400, payload=None):
        self.message = message
        self.status_code = status_code
        self.payload = payload
        super().__init__(self.message)

    def to_dict(self):
        rv = dict(self.payload or ())
        rv["error"] = self.error_code
        rv["message"] = self.message
        return rv


class Unauthenticated(BaseAPIException):
    """Raised when the bearer token is missing, expired, revoked or invalid"""

    error_code = "unauthenticated"

    def __init__(self, message="Authentication required, please log in again", status_code=401):
        super().__init__(message, status_code)


class InvalidCredentials(Unauthenticated):
    """Raised when login fails for any reason"""

    error_code = "invalid_credentials"

    def __init__(self, message="Invalid email or password", status_code=401):
        super().__init__(message, status_code)


class ForbiddenTenant(BaseAPIException):
    """Raised when the caller may not operate in the requested tenant"""

    error_code = "forbidden_tenant"

    def __init__(self, message="Access to this tenant is not allowed", status_code=403):
        super().__init__(message, status_code)


class ForbiddenChannel(BaseAPIException):
    """Raised for channels that are absent, outside the tenant, or not accessible.

    The message is identical in every case so callers cannot test for
    channels they are not allowed to see.
    """

    error_code = "forbidden_channel"

    def __init__(self, message="Channel not found or not accessible", status_code=403):
        super().__init__(message, status_code)


class PermissionDenied(BaseAPIException):
    """Raised when user doesn't have required permissions"""

    error_code = "permission_denied"

    def __init__(self, message="Permission denied", status_code=403):
        super().__init__(message, status_code)


class NotFound(BaseAPIException):
    """Raised when a resource is absent or outside the active tenant"""

    error_code = "not_found"

    def __init__(self, message="Resource not found", status_code=404):
        super().__init__(message, status_code)


class ValidationError(BaseAPIException):
    """Raised on malformed input"""

    error_code = "validation_error"

    def __init__(self, message="Invalid request", status_code=400, fields=None):
        super().__init__(message, status_code, payload={"fields": fields} if fields else None)


class Conflict(BaseAPIException):
    """Raised when the request duplicates something that already exists"""

    error_code = "conflict"

    def __init__(self, message="Resource already exists", status_code=409):
        super().__init__(message, status_code)


class TransientStoreError(BaseAPIException):
    """Raised when the underlying store is unavailable"""

    error_code = "store_unavailable"

    def __init__(self, message="Storage temporarily unavailable, please retry", status_code=503):
        super().__init__(message, status_code)
