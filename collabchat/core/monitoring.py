# collabchat/core/monitoring.py

from flask import request
import sentry_sdk
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from functools import wraps
import logging

logger = logging.getLogger(__name__)


def should_capture_error(exception):
    """Determine if an error should be captured based on type and context"""
    # Don't capture 4xx errors, they are client mistakes or auth failures
    status_code = getattr(exception, "status_code", None) or getattr(exception, "code", None)
    if isinstance(status_code, int) and status_code < 500:
        return False
    return True


def init_sentry(app):
    """Initialize Sentry with settings sized for the free tier"""
    if not app.config.get("SENTRY_DSN"):
        logger.warning("SENTRY_DSN not configured, skipping Sentry initialization")
        return

    def before_send(event, hint):
        """Drop client errors and trim request data"""
        exc_info = hint.get("exc_info")
        if exc_info and not should_capture_error(exc_info[1]):
            return None

        if request:
            event["request"] = {"url": request.url, "method": request.method}
        return event

    sentry_sdk.init(
        dsn=app.config["SENTRY_DSN"],
        integrations=[
            FlaskIntegration(transaction_style="url"),
            SqlalchemyIntegration(),
            RedisIntegration(),
        ],
        before_send=before_send,
        traces_sample_rate=0.01,
        profiles_sample_rate=0.0,
        environment=app.config.get("FLASK_ENV", "production"),
        max_breadcrumbs=20,
        send_default_pii=False,
        debug=False,
    )


def capture_error(func):
    """Report unexpected errors of a view, tagged with the caller's tenant"""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            if should_capture_error(e):
                identity = kwargs.get("identity")
                with sentry_sdk.new_scope() as scope:
                    if identity is not None:
                        scope.set_tag("tenant_id", identity.active_tenant_id)
                        scope.set_user({"id": identity.user_id, "role": identity.role})
                    sentry_sdk.capture_exception(e)
            raise

    return wrapper
