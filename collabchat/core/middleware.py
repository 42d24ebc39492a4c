from functools import wraps
from flask import request, g, abort, Response
from werkzeug.middleware.proxy_fix import ProxyFix
import select
import socket
import time
import logging
from typing import Optional, Callable, Any

from collabchat.core.exceptions import Unauthenticated
from collabchat.core.metrics import metrics
from collabchat.services import get_services

logger = logging.getLogger(__name__)

TENANT_HEADER = "X-Tenant-ID"


def bearer_token() -> Optional[str]:
    """Token from the Authorization header, if any"""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def session_required(f: Callable) -> Callable:
    """Resolve the caller and pass it to the view as ``identity``.

    Every endpoint except login and health goes through here. An admin may
    scope a single request to another tenant with the X-Tenant-ID header.
    """

    @wraps(f)
    def decorated(*args: Any, **kwargs: Any) -> Any:
        token = bearer_token()
        if token is None:
            raise Unauthenticated()

        resolver = get_services().identity
        identity = resolver.resolve(token)
        identity = resolver.scope(identity, request.headers.get(TENANT_HEADER))
        return f(*args, identity=identity, **kwargs)

    return decorated


def client_disconnected(environ) -> bool:
    """Best-effort check whether the client of a long request hung up.

    Only gunicorn exposes the raw socket; elsewhere this always reports a
    live client and polls simply run to their timeout.
    """
    sock = environ.get("gunicorn.socket")
    if sock is None:
        return False
    try:
        readable, _, _ = select.select([sock], [], [], 0)
        if not readable:
            return False
        return sock.recv(1, socket.MSG_PEEK) == b""
    except (OSError, ValueError):
        return True


class SecurityMiddleware:
    """Security middleware for request validation"""

    ALLOWED_CONTENT_TYPES = {"application/json"}
    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # 1MB

    @staticmethod
    def validate_request() -> Optional[Response]:
        """Validate incoming request for security concerns"""
        content_length = request.content_length or 0
        if content_length > SecurityMiddleware.MAX_CONTENT_LENGTH:
            return abort(413, "Request entity too large")

        # Bodies must be JSON for POST/PUT/PATCH
        if request.method in {"POST", "PUT", "PATCH"} and content_length:
            content_type = request.content_type or ""
            if not any(
                allowed in content_type for allowed in SecurityMiddleware.ALLOWED_CONTENT_TYPES
            ):
                return abort(415, "Unsupported content type")

        return None


class MetricsMiddleware:
    """Middleware for collecting request metrics"""

    @staticmethod
    def start_timer() -> None:
        g.start_time = time.time()

    @staticmethod
    def record_metrics(response) -> None:
        if hasattr(g, "start_time"):
            elapsed_time = time.time() - g.start_time
            metrics.track_request(
                endpoint=request.endpoint or request.path,
                duration=elapsed_time,
                status_code=response.status_code,
            )
            logger.info(
                f"{request.method} {request.path} {response.status_code} {elapsed_time:.3f}s",
                extra={
                    "method": request.method,
                    "path": request.path,
                    "status_code": response.status_code,
                    "elapsed_time": elapsed_time,
                    "remote_addr": request.remote_addr,
                },
            )


def configure_middleware(app):
    """Configure all middleware for the application"""
    # Use ProxyFix if behind a proxy (like nginx)
    if not app.debug and not app.testing:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)

    @app.before_request
    def before_request():
        MetricsMiddleware.start_timer()
        return SecurityMiddleware.validate_request()

    @app.after_request
    def after_request(response):
        MetricsMiddleware.record_metrics(response)
        return response

    logger.info("Middleware configured successfully")
    return app
