# collabchat/__init__.py
import atexit
import logging
import os

from flask import Flask, jsonify

from .config import config_by_name, setup_logging
from .extensions import init_extensions
from .core.errors import register_error_handlers
from .core.middleware import configure_middleware
from .core.monitoring import init_sentry
from .core.security.security_headers import init_security_headers
from .services import init_services
from .cli import register_commands
from .api.auth.routes import auth_bp
from .api.tenant.routes import tenant_bp
from .api.channels.routes import channels_bp
from .api.messages.routes import messages_bp
from .api.chat.routes import chat_bp
from .api.presence.routes import presence_bp
from .api.admin.routes import admin_bp
from .api.health.routes import health_bp
from .api.metrics.routes import metrics_bp

logger = logging.getLogger(__name__)


def create_app(config_name=None, notifier=None):
    config_name = config_name or os.getenv("FLASK_ENV", "development")
    app = Flask(__name__)

    # Load config
    app.config.from_object(config_by_name[config_name])
    if not app.testing:
        setup_logging(config_name)

    init_extensions(app)
    register_error_handlers(app)
    configure_middleware(app)
    init_security_headers(app)
    init_sentry(app)
    register_commands(app)

    services = init_services(app, notifier=notifier)
    if not app.testing:
        # Test apps shut their notifier down in teardown
        atexit.register(services.notifier.shutdown)

    @app.route("/")
    def root():
        return jsonify({"service": "collabchat", "version": app.config.get("VERSION", "1.0.0"), "status": "running"})

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(tenant_bp, url_prefix="/api/tenant")
    app.register_blueprint(channels_bp, url_prefix="/api/channels")
    app.register_blueprint(messages_bp, url_prefix="/api")
    app.register_blueprint(chat_bp, url_prefix="/api/chat")
    app.register_blueprint(presence_bp, url_prefix="/api/presence")
    app.register_blueprint(admin_bp, url_prefix="/api/admin")
    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(metrics_bp, url_prefix="/api")

    logger.info(f"collabchat started with {config_name} config")
    return app
