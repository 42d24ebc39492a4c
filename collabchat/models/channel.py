from collabchat.extensions import db
from collabchat.core.database import BaseModel, utcnow, isoformat
from collabchat.core.constants import (
    ChannelType,
    ChannelRole,
    NotificationPreference,
    MANAGING_CHANNEL_ROLES,
)


class Channel(BaseModel):
    __tablename__ = "channels"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    tenant_id = db.Column(
        db.String(36), db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    name = db.Column(db.String(100))
    description = db.Column(db.String(500))
    type = db.Column(db.String(20), nullable=False, default=ChannelType.PUBLIC.value)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    is_archived = db.Column(db.Boolean, nullable=False, default=False)
    is_read_only = db.Column(db.Boolean, nullable=False, default=False)

    members = db.relationship(
        "ChannelMember",
        backref="channel",
        lazy="dynamic",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (db.Index("idx_channels_tenant_name", "tenant_id", "name"),)

    def __repr__(self):
        return f"<Channel {self.id} {self.type}:{self.name}>"

    @property
    def is_public(self):
        return self.type == ChannelType.PUBLIC.value

    @property
    def is_direct(self):
        return self.type == ChannelType.DIRECT.value

    def member(self, user_id):
        return self.members.filter_by(user_id=user_id).first()

    def to_dict(self, membership=None, read_state=None):
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "created_by": self.created_by,
            "is_archived": self.is_archived,
            "is_read_only": self.is_read_only,
            "created_at": isoformat(self.created_at),
        }
        if membership is not None:
            data["user_role"] = membership.role
            data["notification_preference"] = membership.notification_preference
            data["unread_count"] = read_state.unread_count if read_state is not None else 0
            data["unread_mentions"] = read_state.unread_mentions if read_state is not None else 0
        return data


class ChannelMember(db.Model):
    __tablename__ = "channel_members"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    channel_id = db.Column(
        db.Integer, db.ForeignKey("channels.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=ChannelRole.MEMBER.value)
    notification_preference = db.Column(
        db.String(20), nullable=False, default=NotificationPreference.ALL.value
    )
    muted_until = db.Column(db.DateTime)
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    user = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("channel_id", "user_id", name="uq_channel_member"),
        db.Index("idx_channel_members_user", "user_id"),
    )

    def __repr__(self):
        return f"<ChannelMember channel={self.channel_id} user={self.user_id} {self.role}>"

    @property
    def can_manage(self):
        return self.role in MANAGING_CHANNEL_ROLES

    def is_muted(self, now=None):
        now = now or utcnow()
        return self.muted_until is not None and self.muted_until > now

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "display_name": self.user.display_name if self.user else None,
            "email": self.user.email if self.user else None,
            "role": self.role,
            "notification_preference": self.notification_preference,
            "muted_until": isoformat(self.muted_until),
            "joined_at": isoformat(self.joined_at),
        }
