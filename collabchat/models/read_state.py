from collabchat.extensions import db
from collabchat.core.database import utcnow, isoformat


class ReadState(db.Model):
    """Per (user, channel) read bookmark and unread counters"""

    __tablename__ = "read_states"

    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    channel_id = db.Column(
        db.Integer, db.ForeignKey("channels.id", ondelete="CASCADE"), primary_key=True
    )
    last_read_message_id = db.Column(db.Integer, nullable=False, default=0)
    unread_count = db.Column(db.Integer, nullable=False, default=0)
    unread_mentions = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<ReadState user={self.user_id} channel={self.channel_id} unread={self.unread_count}>"

    def to_dict(self):
        return {
            "channel_id": self.channel_id,
            "last_read_message_id": self.last_read_message_id,
            "unread_count": self.unread_count,
            "unread_mentions": self.unread_mentions,
            "updated_at": isoformat(self.updated_at),
        }
