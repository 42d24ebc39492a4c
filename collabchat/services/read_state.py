# collabchat/services/read_state.py
import logging
import re
from typing import Dict, Optional

from sqlalchemy import case, func

from collabchat.extensions import db
from collabchat.core.constants import ChannelAction, MessageType
from collabchat.core.database import session_manager, retry_read_once, upsert, utcnow
from collabchat.core.exceptions import ValidationError
from collabchat.models import Channel, ChannelMember, Message, ReadState, User
from .identity import Identity

logger = logging.getLogger(__name__)

MENTION_PATTERN = re.compile(r"@([\w.+\-@]+)")


def extract_mentions(content: str) -> set:
    return {match.rstrip(".").lower() for match in MENTION_PATTERN.findall(content or "")}


class ReadStateTracker:
    """Per (user, channel) read bookmarks and unread counters"""

    def __init__(self, channels):
        self.channels = channels

    def mark_read(self, identity: Identity, channel_id, message_id: Optional[int] = None) -> dict:
        """Move the read bookmark forward. It never moves backwards."""
        channel = self.channels.require(identity, channel_id, ChannelAction.READ)

        latest = (
            db.session.query(func.max(Message.id)).filter(Message.channel_id == channel.id).scalar()
        )
        if message_id is None:
            message_id = latest or 0
        else:
            try:
                message_id = int(message_id)
            except (TypeError, ValueError):
                raise ValidationError("message_id must be an integer", fields={"message_id": ["invalid"]})
            if message_id < 0:
                raise ValidationError("message_id must not be negative", fields={"message_id": ["invalid"]})
            message_id = min(message_id, latest or 0)

        with session_manager():
            column = ReadState.last_read_message_id
            upsert(
                ReadState,
                index_elements=["user_id", "channel_id"],
                values={
                    "user_id": identity.user_id,
                    "channel_id": channel.id,
                    "last_read_message_id": message_id,
                    "unread_count": 0,
                    "unread_mentions": 0,
                    "updated_at": utcnow(),
                },
                set_={
                    "last_read_message_id": case((column < message_id, message_id), else_=column),
                    "unread_count": 0,
                    "unread_mentions": 0,
                    "updated_at": utcnow(),
                },
            )

        state = db.session.get(ReadState, (identity.user_id, channel.id))
        db.session.refresh(state)
        return state.to_dict()

    def on_message_appended(self, message: Message) -> None:
        """Bump unread counters of every other member. Runs inside the append transaction."""
        if message.message_type == MessageType.SYSTEM.value:
            return

        members = (
            db.session.query(ChannelMember, User)
            .join(User, User.id == ChannelMember.user_id)
            .filter(ChannelMember.channel_id == message.channel_id)
            .filter(ChannelMember.user_id != message.user_id)
            .all()
        )
        if not members:
            return

        mentions = extract_mentions(message.content)
        now = utcnow()
        for member, user in members:
            if member.is_muted(now):
                continue
            mentioned = 1 if mentions and mentions & user.mention_handles() else 0

            upsert(
                ReadState,
                index_elements=["user_id", "channel_id"],
                values={
                    "user_id": member.user_id,
                    "channel_id": message.channel_id,
                    "last_read_message_id": 0,
                    "unread_count": 1,
                    "unread_mentions": mentioned,
                    "updated_at": now,
                },
                set_={
                    "unread_count": ReadState.unread_count + 1,
                    "unread_mentions": ReadState.unread_mentions + mentioned,
                    "updated_at": now,
                },
            )

    @retry_read_once
    def unread_summary(self, identity: Identity) -> Dict[int, Dict]:
        """Unread counters of joined, unarchived channels in the scoped tenant that have unread messages"""
        rows = (
            db.session.query(Channel, ReadState)
            .join(ChannelMember, ChannelMember.channel_id == Channel.id)
            .join(
                ReadState,
                (ReadState.channel_id == Channel.id) & (ReadState.user_id == identity.user_id),
            )
            .filter(ChannelMember.user_id == identity.user_id)
            .filter(Channel.tenant_id == identity.tenant_id)
            .filter(Channel.is_archived.is_(False))
            .filter(ReadState.unread_count > 0)
            .order_by(Channel.id)
            .all()
        )
        return {
            channel.id: {
                "channel_name": channel.name,
                "channel_type": channel.type,
                "last_read_message_id": state.last_read_message_id,
                "unread": state.unread_count,
                "mentions": state.unread_mentions,
            }
            for channel, state in rows
        }

    def unread_counts(self, identity: Identity) -> Dict[int, Dict[str, int]]:
        """Compact per-channel counters for poll responses"""
        return {
            channel_id: {"unread": summary["unread"], "mentions": summary["mentions"]}
            for channel_id, summary in self.unread_summary(identity).items()
        }
