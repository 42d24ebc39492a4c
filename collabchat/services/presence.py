# collabchat/services/presence.py
"""User presence and typing indicators.

Presence is reported per (user, tenant). A user who has shown no activity for
``CHAT_PRESENCE_IDLE_SECONDS`` reads as offline whatever status they last set.
Polling counts as activity. Typing indicators expire on their own after
``CHAT_TYPING_TTL_SECONDS``; expired rows are purged on the next write.
"""
import logging
from datetime import timedelta
from typing import Optional, List

from flask import current_app
from sqlalchemy import case

from collabchat.extensions import db
from collabchat.core.constants import ChannelAction, PresenceStatus, PRESENCE_STATUS_ORDER
from collabchat.core.database import session_manager, retry_read_once, upsert, utcnow
from collabchat.core.exceptions import ValidationError
from collabchat.core.security.sanitization import ContentSanitizer
from collabchat.models import ChannelMember, TypingIndicator, User, UserPresence
from .identity import Identity

logger = logging.getLogger(__name__)

STATUS_MESSAGE_MAX_LENGTH = 200


class PresenceTracker:
    def __init__(self, channels):
        self.channels = channels

    def update(self, identity: Identity, status, status_message=None, current_channel_id=None) -> dict:
        """Set the caller's status in the scoped tenant"""
        status = self._status(status)
        status_message = self._status_message(status_message)
        channel_id = None
        if current_channel_id is not None and current_channel_id != "":
            channel_id = self.channels.require(identity, current_channel_id, ChannelAction.READ).id

        now = utcnow()
        fields = {
            "status": status,
            "status_message": status_message,
            "current_channel_id": channel_id,
            "last_activity": now,
        }
        with session_manager():
            upsert(
                UserPresence,
                index_elements=["user_id", "tenant_id"],
                values={"user_id": identity.user_id, "tenant_id": identity.tenant_id, **fields},
                set_=fields,
            )
        logger.debug(
            f"User {identity.user_id} set presence to {status}",
            extra={"tenant_id": identity.tenant_id},
        )
        return self._get(identity).to_dict(self.idle_after, now)

    def touch(self, identity: Identity, channel_id: Optional[int] = None) -> None:
        """Record activity. An offline user comes back online; other statuses are kept."""
        now = utcnow()
        set_ = {
            "last_activity": now,
            "status": case(
                (UserPresence.status == PresenceStatus.OFFLINE.value, PresenceStatus.ONLINE.value),
                else_=UserPresence.status,
            ),
        }
        if channel_id is not None:
            set_["current_channel_id"] = channel_id
        with session_manager():
            upsert(
                UserPresence,
                index_elements=["user_id", "tenant_id"],
                values={
                    "user_id": identity.user_id,
                    "tenant_id": identity.tenant_id,
                    "status": PresenceStatus.ONLINE.value,
                    "current_channel_id": channel_id,
                    "last_activity": now,
                },
                set_=set_,
            )

    @retry_read_once
    def presence(self, identity: Identity, channel_id=None, include_self=False) -> dict:
        """Presence of users in the scoped tenant, optionally only members of one channel"""
        query = (
            UserPresence.query.join(User, User.id == UserPresence.user_id)
            .filter(UserPresence.tenant_id == identity.tenant_id)
        )
        channel = None
        if channel_id is not None and channel_id != "":
            channel = self.channels.require(identity, channel_id, ChannelAction.READ)
            query = query.join(
                ChannelMember,
                (ChannelMember.user_id == UserPresence.user_id)
                & (ChannelMember.channel_id == channel.id),
            )
        if not include_self:
            query = query.filter(UserPresence.user_id != identity.user_id)

        now = utcnow()
        entries = [row.to_dict(self.idle_after, now) for row in query.all()]
        entries.sort(
            key=lambda entry: (
                PRESENCE_STATUS_ORDER.index(entry["status"])
                if entry["status"] in PRESENCE_STATUS_ORDER
                else len(PRESENCE_STATUS_ORDER),
                (entry["display_name"] or entry["email"] or "").lower(),
            )
        )

        summary = {"total_users": len(entries)}
        for status in PRESENCE_STATUS_ORDER:
            summary[f"{status}_count"] = sum(1 for entry in entries if entry["status"] == status)
        return {
            "presence": entries,
            "summary": summary,
            "channel_id": channel.id if channel is not None else None,
        }

    def set_typing(self, identity: Identity, channel_id, is_typing=True) -> None:
        channel = self.channels.require(identity, channel_id, ChannelAction.WRITE)
        now = utcnow()
        with session_manager():
            TypingIndicator.query.filter(TypingIndicator.expires_at < now).delete(
                synchronize_session=False
            )
            if is_typing:
                expires_at = now + timedelta(seconds=current_app.config["CHAT_TYPING_TTL_SECONDS"])
                upsert(
                    TypingIndicator,
                    index_elements=["channel_id", "user_id"],
                    values={
                        "channel_id": channel.id,
                        "user_id": identity.user_id,
                        "started_at": now,
                        "expires_at": expires_at,
                    },
                    set_={"started_at": now, "expires_at": expires_at},
                )
            else:
                TypingIndicator.query.filter_by(
                    channel_id=channel.id, user_id=identity.user_id
                ).delete(synchronize_session=False)

    def typing_users(self, identity: Identity, channel_id) -> List[dict]:
        """Other users currently typing in an already authorized channel, most recent first"""
        rows = (
            db.session.query(TypingIndicator, User)
            .join(User, User.id == TypingIndicator.user_id)
            .filter(TypingIndicator.channel_id == channel_id)
            .filter(TypingIndicator.user_id != identity.user_id)
            .filter(TypingIndicator.expires_at > utcnow())
            .order_by(TypingIndicator.started_at.desc())
            .all()
        )
        return [{"user_id": user.id, "display_name": user.display_name} for _, user in rows]

    @property
    def idle_after(self) -> timedelta:
        return timedelta(seconds=current_app.config["CHAT_PRESENCE_IDLE_SECONDS"])

    def _get(self, identity: Identity) -> UserPresence:
        presence = db.session.get(UserPresence, (identity.user_id, identity.tenant_id))
        db.session.refresh(presence)
        return presence

    def _status(self, status) -> str:
        try:
            return PresenceStatus(status).value
        except ValueError:
            raise ValidationError(
                f"Invalid status. Valid values are: {', '.join(PRESENCE_STATUS_ORDER)}",
                fields={"status": ["invalid"]},
            )

    def _status_message(self, status_message) -> Optional[str]:
        if status_message is None:
            return None
        if not isinstance(status_message, str):
            raise ValidationError("status_message must be a string", fields={"status_message": ["invalid"]})
        sanitizer = ContentSanitizer(STATUS_MESSAGE_MAX_LENGTH)
        status_message = sanitizer.sanitize_string(status_message.strip()).strip()
        if sanitizer.exceeds_length(status_message):
            raise ValidationError(
                f"status_message exceeds {STATUS_MESSAGE_MAX_LENGTH} characters",
                fields={"status_message": ["too_long"]},
            )
        return status_message or None
