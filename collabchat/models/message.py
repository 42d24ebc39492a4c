from collabchat.extensions import db
from collabchat.core.database import utcnow, isoformat
from collabchat.core.constants import MessageType, DELETED_MESSAGE_PLACEHOLDER


class Message(db.Model):
    """Append-only chat message. Ids increase monotonically within a tenant."""

    __tablename__ = "messages"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    tenant_id = db.Column(
        db.String(36), db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    channel_id = db.Column(
        db.Integer, db.ForeignKey("channels.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"))
    content = db.Column(db.Text, nullable=False)
    message_type = db.Column(db.String(20), nullable=False, default=MessageType.TEXT.value)
    parent_message_id = db.Column(db.Integer, db.ForeignKey("messages.id"))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    is_edited = db.Column(db.Boolean, nullable=False, default=False)
    edited_at = db.Column(db.DateTime)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime)

    author = db.relationship("User")

    __table_args__ = (
        db.Index("idx_messages_channel_id", "channel_id", "id"),
        db.Index("idx_messages_tenant_id", "tenant_id", "id"),
        db.Index("idx_messages_parent", "parent_message_id"),
    )

    def __repr__(self):
        return f"<Message {self.id} channel={self.channel_id}>"

    def to_dict(self, reply_count=None, reactions=None):
        data = {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "channel_id": self.channel_id,
            "user_id": self.user_id,
            "user_name": self.author.display_name if self.author else None,
            "content": DELETED_MESSAGE_PLACEHOLDER if self.is_deleted else self.content,
            "message_type": self.message_type,
            "parent_message_id": self.parent_message_id,
            "created_at": isoformat(self.created_at),
            "is_edited": self.is_edited,
            "edited_at": isoformat(self.edited_at),
            "is_deleted": self.is_deleted,
        }
        if reply_count is not None:
            data["reply_count"] = reply_count
        if reactions is not None:
            data["reactions"] = reactions
        return data
