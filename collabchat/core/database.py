# collabchat/core/database.py

from ..extensions import db
from datetime import datetime, timezone
from contextlib import contextmanager
from functools import wraps
from typing import Generator, Iterable, Dict, Any
import logging

from sqlalchemy.exc import OperationalError, DisconnectionError
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from .exceptions import TransientStoreError

logger = logging.getLogger(__name__)

STORE_ERRORS = (OperationalError, DisconnectionError)


def utcnow():
    """Naive UTC timestamp, matching the DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@contextmanager
def session_manager() -> Generator[Session, None, None]:
    """
    Context manager for a unit of work.
    Commits on success, rolls back on any error and surfaces store
    outages as TransientStoreError.
    """
    try:
        yield db.session
        db.session.commit()
    except STORE_ERRORS as e:
        db.session.rollback()
        logger.error(f"Store error during write: {e}")
        raise TransientStoreError() from e
    except Exception:
        db.session.rollback()
        raise


def retry_read_once(f):
    """Retry an idempotent read once when the store connection drops"""

    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except STORE_ERRORS as e:
            logger.warning(f"Store error in {f.__name__}, retrying once: {e}")
            db.session.rollback()
            try:
                return f(*args, **kwargs)
            except STORE_ERRORS as retry_error:
                db.session.rollback()
                raise TransientStoreError() from retry_error

    return wrapper


def upsert(model, index_elements: Iterable[str], values: Dict[str, Any], set_: Dict[str, Any]):
    """Insert a row or update it in place with a single atomic statement"""
    dialect = db.session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(model)
    elif dialect == "sqlite":
        stmt = sqlite.insert(model)
    else:
        raise NotImplementedError(f"Upsert is not supported on {dialect}")

    stmt = stmt.values(**values).on_conflict_do_update(
        index_elements=list(index_elements), set_=set_
    )
    db.session.execute(stmt)


class BaseModel(db.Model):
    __abstract__ = True

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @classmethod
    def get_by_id(cls, id):
        """Safely get instance by ID"""
        return db.session.get(cls, id)

    def save(self):
        """Save instance with proper error handling"""
        with session_manager() as session:
            session.add(self)
        return self

    @classmethod
    def create(cls, **kwargs):
        """Create new instance with proper session management"""
        instance = cls(**kwargs)
        return instance.save()


def isoformat(value):
    return value.isoformat() if value else None
