from collabchat.extensions import db
from collabchat.core.database import utcnow, isoformat


class AuthSession(db.Model):
    """Server-side session keyed by an opaque token"""

    __tablename__ = "auth_sessions"

    token = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    active_tenant_id = db.Column(
        db.String(36), db.ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True
    )

    # Snapshot of role and tenant taken at login / tenant switch
    role_snapshot = db.Column(db.String(20), nullable=False)
    tenant_snapshot = db.Column(db.JSON)

    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)
    last_activity = db.Column(db.DateTime, nullable=False, default=utcnow)
    revoked_at = db.Column(db.DateTime)

    user = db.relationship("User", backref=db.backref("sessions", lazy="dynamic", passive_deletes=True))

    __table_args__ = (db.Index("idx_auth_sessions_user", "user_id"),)

    def __repr__(self):
        return f"<AuthSession user={self.user_id} tenant={self.active_tenant_id}>"

    def is_valid(self, now=None):
        now = now or utcnow()
        return self.revoked_at is None and self.expires_at > now

    def to_dict(self):
        return {
            "active_tenant_id": self.active_tenant_id,
            "tenant": self.tenant_snapshot,
            "role": self.role_snapshot,
            "created_at": isoformat(self.created_at),
            "expires_at": isoformat(self.expires_at),
            "last_activity": isoformat(self.last_activity),
        }
