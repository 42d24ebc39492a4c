from collabchat.extensions import db
from collabchat.core.constants import PresenceStatus
from collabchat.core.database import utcnow, isoformat


class UserPresence(db.Model):
    """Last reported status of a user within one tenant"""

    __tablename__ = "user_presence"

    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    tenant_id = db.Column(
        db.String(36), db.ForeignKey("tenants.id", ondelete="CASCADE"), primary_key=True
    )
    status = db.Column(db.String(20), nullable=False, default=PresenceStatus.ONLINE.value)
    status_message = db.Column(db.String(200))
    current_channel_id = db.Column(
        db.Integer, db.ForeignKey("channels.id", ondelete="SET NULL")
    )
    last_activity = db.Column(db.DateTime, nullable=False, default=utcnow)

    user = db.relationship("User")

    def __repr__(self):
        return f"<UserPresence user={self.user_id} tenant={self.tenant_id} {self.status}>"

    def effective_status(self, idle_after, now=None):
        """Reported status, or offline once the user has been idle too long"""
        now = now or utcnow()
        if self.last_activity is None or now - self.last_activity > idle_after:
            return PresenceStatus.OFFLINE.value
        return self.status

    def to_dict(self, idle_after, now=None):
        return {
            "user_id": self.user_id,
            "display_name": self.user.display_name if self.user else None,
            "email": self.user.email if self.user else None,
            "status": self.effective_status(idle_after, now),
            "status_message": self.status_message,
            "current_channel_id": self.current_channel_id,
            "last_activity": isoformat(self.last_activity),
        }


class TypingIndicator(db.Model):
    """Short-lived marker that a user is composing a message in a channel"""

    __tablename__ = "typing_indicators"

    channel_id = db.Column(
        db.Integer, db.ForeignKey("channels.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    started_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)

    user = db.relationship("User")

    __table_args__ = (db.Index("idx_typing_indicators_expiry", "expires_at"),)

    def __repr__(self):
        return f"<TypingIndicator channel={self.channel_id} user={self.user_id}>"
