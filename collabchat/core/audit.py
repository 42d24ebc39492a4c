# collabchat/core/audit.py
from functools import wraps
from flask import request
from typing import Optional, Dict, Any, Callable
import logging

from collabchat.extensions import db
from collabchat.models.audit_log import AuditLog

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = {'password', 'password_hash', 'token'}


def track_changes(before: Dict[str, Any], after: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Track changes between two dictionaries"""
    changes = {}

    for key in set(before.keys()) | set(after.keys()):
        if key not in before:
            changes[key] = {'added': after[key]}
        elif key not in after:
            changes[key] = {'removed': before[key]}
        elif before[key] != after[key]:
            changes[key] = {
                'from': before[key],
                'to': after[key]
            }

    return changes if changes else None


def _request_changes() -> Optional[Dict[str, Any]]:
    data = request.get_json(silent=True) if request.is_json else None
    if not isinstance(data, dict):
        return None
    return {key: value for key, value in data.items() if key not in SENSITIVE_FIELDS}


def audit_action(
        action: str,
        entity_type: str,
        get_entity_id: Optional[Callable] = None
):
    """
    Decorator to audit API actions.

    Args:
        action: Type of action (create, update, delete, etc.)
        entity_type: Type of entity being acted upon
        get_entity_id: Optional function to extract entity ID from the view kwargs
    """

    def decorator(f: Callable):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            response = f(*args, **kwargs)

            identity = kwargs.get('identity')
            try:
                AuditLog.log_action(
                    action=action,
                    entity_type=entity_type,
                    entity_id=get_entity_id(kwargs) if get_entity_id else None,
                    changes=_request_changes(),
                    tenant_id=identity.active_tenant_id if identity else None,
                    user_id=identity.user_id if identity else None,
                    ip_address=request.remote_addr,
                    user_agent=request.user_agent.string,
                    endpoint=request.endpoint
                )
                db.session.commit()
            except Exception as e:
                # The action itself already committed
                logger.error(f"Error creating audit log: {str(e)}")
                db.session.rollback()

            return response

        return decorated_function

    return decorator
