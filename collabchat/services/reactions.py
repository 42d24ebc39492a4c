# collabchat/services/reactions.py
import logging
from collections import OrderedDict
from typing import Dict, List

from flask import current_app
from sqlalchemy.exc import IntegrityError

from collabchat.extensions import db
from collabchat.core.database import session_manager, retry_read_once, utcnow
from collabchat.core.exceptions import Conflict, NotFound, ValidationError
from collabchat.core.security.sanitization import ContentSanitizer
from collabchat.models import Message, MessageReaction
from .identity import Identity

logger = logging.getLogger(__name__)


def group_reactions(rows, user_id) -> List[dict]:
    """Collapse reaction rows of one message into per-emoji groups, most used first"""
    groups: Dict[str, dict] = OrderedDict()
    for reaction in rows:
        group = groups.setdefault(
            reaction.emoji,
            {"emoji": reaction.emoji, "count": 0, "user_ids": [], "user_reacted": False},
        )
        group["count"] += 1
        group["user_ids"].append(reaction.user_id)
        if reaction.user_id == user_id:
            group["user_reacted"] = True
    return sorted(groups.values(), key=lambda group: (-group["count"], group["emoji"]))


class ReactionService:
    """Emoji reactions on messages. Readers of a channel may react to its messages."""

    def __init__(self, message_log):
        self.message_log = message_log

    def add(self, identity: Identity, message_id, emoji) -> dict:
        message = self.message_log.get_message(identity, message_id)
        emoji = self.clean_emoji(emoji)
        if message.is_deleted:
            raise ValidationError("Deleted messages cannot be reacted to")

        existing = MessageReaction.query.filter_by(
            message_id=message.id, user_id=identity.user_id, emoji=emoji
        ).first()
        if existing is not None:
            raise Conflict("You already reacted with this emoji")

        try:
            with session_manager():
                db.session.add(
                    MessageReaction(
                        message_id=message.id,
                        user_id=identity.user_id,
                        emoji=emoji,
                        created_at=utcnow(),
                    )
                )
        except IntegrityError:
            # Lost a race with a concurrent identical reaction
            raise Conflict("You already reacted with this emoji")

        logger.debug(
            f"Reaction {emoji} added to message {message.id} by {identity.user_id}",
            extra={"tenant_id": message.tenant_id},
        )
        return self._summary(identity, message)

    def remove(self, identity: Identity, message_id, emoji) -> dict:
        """Remove the caller's own reaction"""
        message = self.message_log.get_message(identity, message_id)
        emoji = self.clean_emoji(emoji)

        reaction = MessageReaction.query.filter_by(
            message_id=message.id, user_id=identity.user_id, emoji=emoji
        ).first()
        if reaction is None:
            raise NotFound("Reaction not found")

        with session_manager():
            db.session.delete(reaction)
        return self._summary(identity, message)

    @retry_read_once
    def summary(self, identity: Identity, message_id) -> dict:
        message = self.message_log.get_message(identity, message_id)
        return self._summary(identity, message)

    def summarize(self, identity: Identity, message_ids) -> Dict[int, List[dict]]:
        """Grouped reactions for messages the caller has already been authorized to read"""
        message_ids = list(message_ids)
        if not message_ids:
            return {}
        rows = (
            MessageReaction.query.filter(MessageReaction.message_id.in_(message_ids))
            .order_by(MessageReaction.created_at, MessageReaction.id)
            .all()
        )
        by_message: Dict[int, list] = {message_id: [] for message_id in message_ids}
        for reaction in rows:
            by_message[reaction.message_id].append(reaction)
        return {
            message_id: group_reactions(reactions, identity.user_id)
            for message_id, reactions in by_message.items()
        }

    def clean_emoji(self, emoji) -> str:
        if emoji is None or not isinstance(emoji, str) or not emoji.strip():
            raise ValidationError("emoji is required", fields={"emoji": ["required"]})
        emoji = emoji.strip()
        sanitizer = ContentSanitizer(current_app.config["CHAT_REACTION_MAX_LENGTH"])
        if (
            sanitizer.exceeds_length(emoji)
            or any(char.isspace() for char in emoji)
            or sanitizer.sanitize_string(emoji) != emoji
        ):
            raise ValidationError("Invalid emoji format", fields={"emoji": ["invalid"]})
        return emoji

    def _summary(self, identity: Identity, message: Message) -> dict:
        reactions = self.summarize(identity, [message.id])[message.id]
        return {
            "message_id": message.id,
            "reactions": reactions,
            "total_reactions": sum(group["count"] for group in reactions),
        }
