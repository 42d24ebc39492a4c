# collabchat/models/audit_log.py
from collabchat.extensions import db
from collabchat.core.database import utcnow, isoformat
from typing import Optional, Dict, Any
import uuid


class AuditLog(db.Model):
    """Record of security-relevant actions (logins, tenant switches, channel changes)"""

    __tablename__ = "audit_logs"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = db.Column(
        db.String(36), db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # What happened
    action = db.Column(db.String(50), nullable=False)  # e.g. 'login', 'switch_tenant'
    entity_type = db.Column(db.String(50), nullable=False)  # e.g. 'session', 'channel'
    entity_id = db.Column(db.String(64), nullable=True)
    changes = db.Column(db.JSON, nullable=True)
    event_metadata = db.Column(db.JSON, nullable=True)

    # Request context
    ip_address = db.Column(db.String(45), nullable=True)  # Support IPv6
    user_agent = db.Column(db.String(255), nullable=True)
    endpoint = db.Column(db.String(255), nullable=True)

    timestamp = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.Index("idx_audit_logs_tenant_timestamp", "tenant_id", "timestamp"),
        db.Index("idx_audit_logs_user_timestamp", "user_id", "timestamp"),
    )

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity_type}:{self.entity_id}>"

    @staticmethod
    def log_action(
        action: str,
        entity_type: str,
        entity_id: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
        event_metadata: Optional[Dict[str, Any]] = None,
        tenant_id: Optional[str] = None,
        user_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
        endpoint: Optional[str] = None,
    ) -> "AuditLog":
        """Add a new audit log entry to the current unit of work"""
        log_entry = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            changes=changes,
            event_metadata=event_metadata,
            tenant_id=tenant_id,
            user_id=user_id,
            ip_address=ip_address,
            user_agent=(user_agent or "")[:255] or None,
            endpoint=endpoint,
        )
        db.session.add(log_entry)
        return log_entry

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "changes": self.changes,
            "event_metadata": self.event_metadata,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "endpoint": self.endpoint,
            "timestamp": isoformat(self.timestamp),
        }
