from collabchat.extensions import db
from collabchat.core.database import utcnow, isoformat


class MessageReaction(db.Model):
    """One emoji reaction of one user on one message"""

    __tablename__ = "message_reactions"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    message_id = db.Column(
        db.Integer, db.ForeignKey("messages.id", ondelete="CASCADE"), nullable=False
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    emoji = db.Column(db.String(32), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    user = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("message_id", "user_id", "emoji", name="uq_message_reaction"),
        db.Index("idx_message_reactions_message", "message_id"),
    )

    def __repr__(self):
        return f"<MessageReaction {self.emoji} message={self.message_id} user={self.user_id}>"

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "display_name": self.user.display_name if self.user else None,
            "emoji": self.emoji,
            "created_at": isoformat(self.created_at),
        }
