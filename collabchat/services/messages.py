# collabchat/services/messages.py
import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict

from flask import current_app
from sqlalchemy import func

from collabchat.extensions import db
from collabchat.core.constants import ChannelAction, MessageType
from collabchat.core.database import session_manager, retry_read_once, utcnow
from collabchat.core.exceptions import ValidationError, NotFound, PermissionDenied
from collabchat.core.security.sanitization import ContentSanitizer
from collabchat.models import Channel, Message, Tenant
from .identity import Identity

logger = logging.getLogger(__name__)


@dataclass
class MessagePage:
    messages: List[Message] = field(default_factory=list)
    has_more: bool = False
    reply_counts: Dict[int, int] = field(default_factory=dict)

    @property
    def next_before(self) -> Optional[int]:
        if self.has_more and self.messages:
            return self.messages[0].id
        return None


def parse_id(value, name) -> Optional[int]:
    """Coerce an optional client supplied id"""
    if value is None or value == "":
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer", fields={name: ["invalid"]})
    if parsed < 0:
        raise ValidationError(f"{name} must not be negative", fields={name: ["invalid"]})
    return parsed


class MessageLog:
    """Append-only message store.

    Ids come from one database sequence. Appends lock the tenant row first, so
    within a tenant the id order is the commit order and a reader holding
    cursor N never later sees a message with an id below N appear.
    """

    def __init__(self, channels, read_state, notifier=None):
        self.channels = channels
        self.read_state = read_state
        self.notifier = notifier

    def append(
        self,
        identity: Identity,
        channel_id,
        content,
        parent_id=None,
        message_type=MessageType.TEXT.value,
    ) -> Message:
        channel = self.channels.require(identity, channel_id, ChannelAction.WRITE)
        content = self.clean_content(content)
        parent_id = parse_id(parent_id, "parent_message_id")

        if parent_id is not None:
            # Deleted parents keep their thread; only the parent's content is hidden
            parent = Message.query.filter_by(id=parent_id, channel_id=channel.id).first()
            if parent is None:
                raise ValidationError(
                    "Parent message not found in this channel",
                    fields={"parent_message_id": ["not_found"]},
                )

        with session_manager():
            message = self.write(channel, identity.user_id, content, message_type, parent_id)

        self.notify(message)
        return message

    def write(self, channel: Channel, user_id, content, message_type=MessageType.TEXT.value,
              parent_id=None) -> Message:
        """Insert a message inside the caller's open transaction.

        The tenant row is locked first so ids commit in order. The caller
        commits and then calls ``notify``.
        """
        db.session.query(Tenant.id).filter(Tenant.id == channel.tenant_id).with_for_update().one()
        message = Message(
            tenant_id=channel.tenant_id,
            channel_id=channel.id,
            user_id=user_id,
            content=content,
            message_type=message_type,
            parent_message_id=parent_id,
            created_at=utcnow(),
        )
        db.session.add(message)
        db.session.flush()
        self.read_state.on_message_appended(message)
        return message

    def notify(self, message: Message) -> None:
        """Wake pollers of the message's tenant. Call only after commit."""
        logger.debug(
            f"Message {message.id} appended to channel {message.channel_id}",
            extra={"tenant_id": message.tenant_id},
        )
        if self.notifier is not None:
            self.notifier.publish(message.tenant_id, message.id)

    @retry_read_once
    def list(self, identity: Identity, channel_id, before=None, limit=None, parent_id=None) -> MessagePage:
        """Newest ``limit`` messages below ``before``, returned oldest first"""
        channel = self.channels.require(identity, channel_id, ChannelAction.READ)
        before = parse_id(before, "before")
        parent_id = parse_id(parent_id, "parent_message_id")
        limit = self._page_size(limit)

        query = Message.query.filter(Message.channel_id == channel.id)
        if parent_id is None:
            query = query.filter(Message.parent_message_id.is_(None))
        else:
            query = query.filter(Message.parent_message_id == parent_id)
        if before is not None:
            query = query.filter(Message.id < before)

        rows = query.order_by(Message.id.desc()).limit(limit + 1).all()
        messages = rows[:limit][::-1]
        return MessagePage(
            messages=messages,
            has_more=len(rows) > limit,
            reply_counts=self.reply_counts([message.id for message in messages]),
        )

    def reply_counts(self, message_ids) -> Dict[int, int]:
        """Number of thread replies per parent id; parents without replies are omitted"""
        if not message_ids:
            return {}
        rows = (
            db.session.query(Message.parent_message_id, func.count(Message.id))
            .filter(Message.parent_message_id.in_(list(message_ids)))
            .group_by(Message.parent_message_id)
            .all()
        )
        return {parent_id: count for parent_id, count in rows}

    def edit(self, identity: Identity, message_id, content) -> Message:
        message = self.get_message(identity, message_id)
        self.channels.require(identity, message.channel_id, ChannelAction.WRITE)
        if message.user_id != identity.user_id:
            raise PermissionDenied("Only the author can edit a message")
        if message.is_deleted:
            raise ValidationError("Deleted messages cannot be edited")
        if message.message_type == MessageType.SYSTEM.value:
            raise ValidationError("System messages cannot be edited")

        content = self.clean_content(content)
        with session_manager():
            message.content = content
            message.is_edited = True
            message.edited_at = utcnow()
            db.session.add(message)
        return message

    def delete(self, identity: Identity, message_id) -> Message:
        """Logical delete by the author or a channel manager"""
        message = self.get_message(identity, message_id)
        if message.user_id != identity.user_id and not self.channels.authorize(
            identity, message.channel_id, ChannelAction.MANAGE
        ):
            raise PermissionDenied("You can only delete your own messages")
        if message.is_deleted:
            return message

        with session_manager():
            message.is_deleted = True
            message.deleted_at = utcnow()
            db.session.add(message)
        logger.info(
            f"Message {message.id} deleted by {identity.user_id}",
            extra={"tenant_id": message.tenant_id},
        )
        return message

    @retry_read_once
    def last_message_id(self, identity: Identity, channel_id=None) -> int:
        query = db.session.query(func.max(Message.id)).filter(
            Message.tenant_id == identity.tenant_id
        )
        if channel_id is not None:
            channel = self.channels.require(identity, channel_id, ChannelAction.READ)
            query = query.filter(Message.channel_id == channel.id)
        else:
            query = query.filter(Message.channel_id.in_(self.channels.joined_channel_ids(identity)))
        return query.scalar() or 0

    def fetch_since(self, identity: Identity, since_id: int, channel_ids=None, limit=None) -> List[Message]:
        """Messages after the cursor that the caller may read, oldest first.

        ``channel_ids`` must already be authorized; by default every channel the
        caller joined in the scoped tenant is searched.
        """
        limit = limit or current_app.config["CHAT_POLL_BATCH_LIMIT"]
        query = Message.query.filter(
            Message.tenant_id == identity.tenant_id, Message.id > since_id
        )
        if channel_ids is None:
            query = query.filter(Message.channel_id.in_(self.channels.joined_channel_ids(identity)))
        else:
            query = query.filter(Message.channel_id.in_(list(channel_ids)))
        return query.order_by(Message.id).limit(limit).all()

    def get_message(self, identity: Identity, message_id) -> Message:
        message_id = parse_id(message_id, "message_id")
        message = (
            Message.query.join(Channel, Channel.id == Message.channel_id)
            .filter(Message.id == message_id, Channel.tenant_id == identity.tenant_id)
            .first()
            if message_id is not None
            else None
        )
        if message is None or not self.channels.authorize(
            identity, message.channel_id, ChannelAction.READ
        ):
            raise NotFound("Message not found")
        return message

    def clean_content(self, content) -> str:
        if content is None or not isinstance(content, str):
            raise ValidationError("Message content is required", fields={"content": ["required"]})
        sanitizer = ContentSanitizer(current_app.config["CHAT_MAX_MESSAGE_LENGTH"])
        content = content.strip()
        if sanitizer.exceeds_length(content):
            raise ValidationError(
                f"Message content exceeds {sanitizer.max_length} characters",
                fields={"content": ["too_long"]},
            )
        content = sanitizer.sanitize_string(content).strip()
        if not content:
            raise ValidationError("Message content cannot be empty", fields={"content": ["empty"]})
        return content

    def _page_size(self, limit) -> int:
        config = current_app.config
        if limit is None or limit == "":
            return config["CHAT_MESSAGES_PAGE_SIZE"]
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            raise ValidationError("limit must be an integer", fields={"limit": ["invalid"]})
        if limit < 1:
            raise ValidationError("limit must be positive", fields={"limit": ["invalid"]})
        return min(limit, config["CHAT_MESSAGES_MAX_PAGE_SIZE"])
