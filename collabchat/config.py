import os
from datetime import timedelta
from google.cloud import secretmanager
import logging
from logging.handlers import RotatingFileHandler
import sys


# Enhanced logging setup
def setup_logging(app_env):
    """Configure logging based on environment"""
    log_level = logging.DEBUG if app_env == "development" else logging.INFO

    # Create logs directory if it doesn't exist
    log_dir = os.getenv("LOG_DIR", "logs")
    if not os.path.exists(log_dir):
        os.makedirs(log_dir)

    # Every record carries the tenant it was emitted for
    class TenantFormatter(logging.Formatter):
        def format(self, record):
            if not hasattr(record, "tenant_id"):
                record.tenant_id = "NO_TENANT"
            return super().format(record)

    log_format = TenantFormatter(
        "%(asctime)s - %(name)s - %(levelname)s - [%(tenant_id)s] - %(message)s"
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(log_format)

    file_handler = RotatingFileHandler(
        os.path.join(log_dir, "collabchat.log"), maxBytes=10 * 1024 * 1024, backupCount=5  # 10MB
    )
    file_handler.setFormatter(log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to prevent duplicates
    root_logger.handlers = []

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    return root_logger


logger = logging.getLogger(__name__)


def get_secret(secret_id, default_value):
    """Get secret from Secret Manager or return default value"""
    project = os.getenv("GCP_SECRET_PROJECT")
    if not project:
        return default_value
    try:
        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{project}/secrets/{secret_id}/versions/latest"
        response = client.access_secret_version(request={"name": name})
        return response.payload.data.decode("UTF-8")
    except Exception as e:
        logger.warning(f"Could not load secret {secret_id}: {e}")
        return default_value


def get_db_url(db_name):
    """Get database URL with connection parameters"""
    user = os.getenv("DB_USER", "postgres")
    password = os.getenv("DB_PASSWORD", "postgres")
    host = os.getenv("DB_HOST", "localhost")
    port = os.getenv("DB_PORT", "5432")

    # Add SSL mode for production
    ssl_mode = "?sslmode=verify-full" if os.getenv("FLASK_ENV") == "production" else ""

    return f"postgresql://{user}:{password}@{host}:{port}/{db_name}{ssl_mode}"


class BaseConfig:
    """Base configuration with shared settings"""

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = True

    # CORS settings
    CORS_ORIGINS = "*"
    CORS_SUPPORTS_CREDENTIALS = True

    # JWT settings. The token only carries the session id; expiry and
    # revocation are enforced against the session row.
    JWT_TOKEN_LOCATION = ["headers"]
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=24)
    JWT_COOKIE_CSRF_PROTECT = False

    # Sessions
    SESSION_LIFETIME = timedelta(hours=24)
    SESSION_ACTIVITY_GRANULARITY = 60  # seconds between last_activity writes

    # Login hardening
    LOGIN_MAX_ATTEMPTS = 5
    LOGIN_LOCKOUT_SECONDS = 900
    LOGIN_RATE_LIMIT = "20 per minute"

    # Rate limiting
    RATELIMIT_ENABLED = True
    RATELIMIT_STRATEGY = "fixed-window"
    RATELIMIT_STORAGE_URI = "memory://"

    # Chat
    CHAT_POLL_INTERVAL = 1.0
    CHAT_POLL_DEFAULT_TIMEOUT = 30
    CHAT_POLL_MAX_TIMEOUT = 30
    CHAT_POLL_BATCH_LIMIT = 100
    CHAT_MESSAGES_PAGE_SIZE = 50
    CHAT_MESSAGES_MAX_PAGE_SIZE = 200
    CHAT_MAX_MESSAGE_LENGTH = 5000
    CHAT_PUBLIC_WRITE_REQUIRES_MEMBERSHIP = False
    CHAT_NOTIFY_BACKEND = "local"
    CHAT_NOTIFY_CHANNEL = "collabchat:messages"
    CHAT_REACTION_MAX_LENGTH = 10
    CHAT_PRESENCE_IDLE_SECONDS = 300  # no activity for this long reads as offline
    CHAT_TYPING_TTL_SECONDS = 10

    REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_size": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "max_overflow": 20,
    }

    # Secrets
    SECRET_KEY = get_secret("collabchat-flask-secret-key", os.getenv("SECRET_KEY", "dev-secret-key"))
    JWT_SECRET_KEY = get_secret(
        "collabchat-jwt-secret-key", os.getenv("JWT_SECRET_KEY", "dev-jwt-secret-key")
    )


class DevelopmentConfig(BaseConfig):
    """Development configuration"""

    DEBUG = True
    DEVELOPMENT = True

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", get_db_url("collabchat_dev"))
    SQLALCHEMY_ECHO = False

    RATELIMIT_DEFAULT = "1000 per hour"

    CORS_ORIGINS = ["http://localhost:3000"]

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


class ProductionConfig(BaseConfig):
    """Production configuration"""

    DEBUG = False
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL")
    SQLALCHEMY_ECHO = False

    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")
    RATELIMIT_HEADERS_ENABLED = True

    CORS_ORIGINS = os.getenv("ALLOWED_ORIGINS", "").split(",")

    # Wake pollers in every worker process
    CHAT_NOTIFY_BACKEND = os.getenv("CHAT_NOTIFY_BACKEND", "redis")

    SENTRY_DSN = get_secret("sentry-dsn", os.getenv("SENTRY_DSN"))

    PREFERRED_URL_SCHEME = "https"
    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # 1MB


class TestingConfig(BaseConfig):
    """Testing configuration"""

    TESTING = True
    DEBUG = False

    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {}

    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"

    RATELIMIT_ENABLED = False

    # Keep poll tests fast
    CHAT_POLL_INTERVAL = 0.05
    CHAT_POLL_MAX_TIMEOUT = 2


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
