# collabchat/services/channels.py
import logging
from typing import Optional, List, Iterable

from flask import current_app
from sqlalchemy import func, or_

from collabchat.extensions import db
from collabchat.core.constants import (
    ChannelAction,
    ChannelRole,
    ChannelType,
    NotificationPreference,
    MessageType,
    UserRole,
)
from collabchat.core.audit import track_changes
from collabchat.core.database import session_manager, retry_read_once
from collabchat.core.exceptions import ForbiddenChannel, ValidationError, PermissionDenied
from collabchat.models import Channel, ChannelMember, TenantMembership, User, AuditLog, ReadState
from .identity import Identity

logger = logging.getLogger(__name__)


class ChannelRegistry:
    """Channel rosters, visibility and the single authorization rule for channels"""

    def __init__(self, message_log=None):
        # Set after construction; the message log depends on this registry
        self.message_log = message_log

    @retry_read_once
    def list_channels(
        self, identity: Identity, include_archived=False, channel_type=None
    ) -> List[dict]:
        query = (
            db.session.query(Channel, ChannelMember, ReadState)
            .outerjoin(
                ChannelMember,
                (ChannelMember.channel_id == Channel.id)
                & (ChannelMember.user_id == identity.user_id),
            )
            .outerjoin(
                ReadState,
                (ReadState.channel_id == Channel.id) & (ReadState.user_id == identity.user_id),
            )
            .filter(Channel.tenant_id == identity.tenant_id)
            .filter(
                or_(
                    Channel.type == ChannelType.PUBLIC.value,
                    ChannelMember.id.isnot(None),
                )
            )
        )
        if not include_archived:
            query = query.filter(Channel.is_archived.is_(False))
        if channel_type:
            query = query.filter(Channel.type == channel_type)

        rows = query.order_by(func.coalesce(Channel.name, ""), Channel.id).all()
        return [channel.to_dict(membership, state) for channel, membership, state in rows]

    def authorize(self, identity: Identity, channel_id, action) -> bool:
        """Fail-closed check of a channel action for the caller.

        Global admins get no bypass here: channel rights come from the channel
        roster, and channels outside the scoped tenant are never accessible.
        """
        try:
            action = ChannelAction(action)
        except ValueError:
            logger.warning(f"Unknown channel action {action!r}")
            return False
        channel = self._get_in_tenant(identity, channel_id)
        if channel is None:
            return False
        membership = channel.member(identity.user_id)
        return self._allows(channel, membership, action)

    def require(self, identity: Identity, channel_id, action) -> Channel:
        """Raising form of authorize; returns the channel"""
        try:
            action = ChannelAction(action)
        except ValueError:
            logger.warning(f"Unknown channel action {action!r}")
            raise ForbiddenChannel()
        channel = self._get_in_tenant(identity, channel_id)
        if channel is None:
            raise ForbiddenChannel()
        membership = channel.member(identity.user_id)
        if not self._allows(channel, membership, action):
            logger.info(
                f"User {identity.user_id} denied {action.value} on channel {channel.id}",
                extra={"tenant_id": identity.tenant_id},
            )
            raise ForbiddenChannel()
        return channel

    @retry_read_once
    def get_channel(self, identity: Identity, channel_id, include_members=False) -> dict:
        channel = self.require(identity, channel_id, ChannelAction.READ)
        data = channel.to_dict(
            channel.member(identity.user_id),
            db.session.get(ReadState, (identity.user_id, channel.id)),
        )
        if include_members:
            data["members"] = [m.to_dict() for m in self._roster(channel)]
        return data

    def create_channel(
        self,
        identity: Identity,
        name: Optional[str],
        channel_type: str = ChannelType.PUBLIC.value,
        members: Iterable[str] = (),
        description: Optional[str] = None,
    ):
        """Create a channel with its creator as owner. Returns (channel, created)."""
        tenant_id = identity.tenant_id
        try:
            channel_type = ChannelType(channel_type).value
        except ValueError:
            raise ValidationError(
                "Invalid channel type. Valid values are: public, private, direct",
                fields={"type": ["invalid"]},
            )

        member_ids = []
        for user_id in members or ():
            if user_id != identity.user_id and user_id not in member_ids:
                member_ids.append(user_id)
        self._check_tenant_users(tenant_id, member_ids)

        name = (name or "").strip() or None
        if channel_type == ChannelType.DIRECT.value:
            if len(member_ids) != 1:
                raise ValidationError("Direct channels must have exactly one other member")
            name = None
            existing = self._find_direct(tenant_id, identity.user_id, member_ids[0])
            if existing is not None:
                return existing, False
        elif not name:
            raise ValidationError(
                "Channel name is required for non-direct channels", fields={"name": ["required"]}
            )

        with session_manager():
            channel = Channel(
                tenant_id=tenant_id,
                name=name,
                description=description,
                type=channel_type,
                created_by=identity.user_id,
            )
            db.session.add(channel)
            db.session.flush()

            db.session.add(
                ChannelMember(
                    channel_id=channel.id, user_id=identity.user_id, role=ChannelRole.OWNER.value
                )
            )
            for user_id in member_ids:
                db.session.add(
                    ChannelMember(
                        channel_id=channel.id, user_id=user_id, role=ChannelRole.MEMBER.value
                    )
                )
            AuditLog.log_action(
                "create",
                "channel",
                entity_id=str(channel.id),
                tenant_id=tenant_id,
                user_id=identity.user_id,
                changes={"name": name, "type": channel_type, "members": member_ids},
            )

            # The announcement commits with the channel or not at all
            announcement = None
            if channel_type != ChannelType.DIRECT.value and self.message_log is not None:
                announcement = self.message_log.write(
                    channel,
                    identity.user_id,
                    self.message_log.clean_content(
                        f"Channel '{name}' was created by {identity.display_name or identity.email}"
                    ),
                    message_type=MessageType.SYSTEM.value,
                )

        logger.info(
            f"Channel {channel.id} ({channel_type}) created by {identity.user_id}",
            extra={"tenant_id": tenant_id},
        )
        if announcement is not None:
            self.message_log.notify(announcement)

        return channel, True

    def update_channel(self, identity: Identity, channel_id, changes: dict) -> Channel:
        """Rename, describe, archive or toggle read-only. Requires manage."""
        channel = self.require(identity, channel_id, ChannelAction.MANAGE)
        allowed = {"name", "description", "is_archived", "is_read_only"}
        updates = {key: value for key, value in changes.items() if key in allowed}
        if not updates:
            raise ValidationError("No fields to update")
        if "name" in updates:
            if channel.is_direct:
                raise ValidationError("Direct channels have no name")
            updates["name"] = (updates["name"] or "").strip()
            if not updates["name"]:
                raise ValidationError("Channel name is required", fields={"name": ["required"]})

        with session_manager():
            before = {key: getattr(channel, key) for key in updates}
            for key, value in updates.items():
                setattr(channel, key, value)
            AuditLog.log_action(
                "update",
                "channel",
                entity_id=str(channel.id),
                tenant_id=channel.tenant_id,
                user_id=identity.user_id,
                changes=track_changes(before, updates),
            )
        return channel

    def add_member(self, identity: Identity, channel_id, user_id, role=ChannelRole.MEMBER.value):
        channel = self.require(identity, channel_id, ChannelAction.MANAGE)
        if channel.is_direct:
            raise ValidationError("Direct channels have exactly two members")
        try:
            role = ChannelRole(role).value
        except ValueError:
            raise ValidationError("Invalid channel role", fields={"role": ["invalid"]})
        if role == ChannelRole.OWNER.value:
            current = channel.member(identity.user_id)
            if current is None or current.role != ChannelRole.OWNER.value:
                raise PermissionDenied("Only owners can add owners")
        self._check_tenant_users(channel.tenant_id, [user_id])

        with session_manager():
            membership = channel.member(user_id)
            if membership is None:
                membership = ChannelMember(channel_id=channel.id, user_id=user_id, role=role)
            else:
                membership.role = role
            db.session.add(membership)
            AuditLog.log_action(
                "add_member",
                "channel",
                entity_id=str(channel.id),
                tenant_id=channel.tenant_id,
                user_id=identity.user_id,
                changes={"member": user_id, "role": role},
            )
        return membership

    def remove_member(self, identity: Identity, channel_id, user_id) -> None:
        channel = self.require(identity, channel_id, ChannelAction.MANAGE)
        self._remove(identity, channel, user_id)

    def join(self, identity: Identity, channel_id) -> ChannelMember:
        channel = self.require(identity, channel_id, ChannelAction.READ)
        if not channel.is_public:
            raise ForbiddenChannel()
        if channel.is_archived:
            raise ValidationError("Channel is archived")
        membership = channel.member(identity.user_id)
        if membership is not None:
            return membership
        with session_manager():
            membership = ChannelMember(
                channel_id=channel.id, user_id=identity.user_id, role=ChannelRole.MEMBER.value
            )
            db.session.add(membership)
        return membership

    def leave(self, identity: Identity, channel_id) -> None:
        channel = self.require(identity, channel_id, ChannelAction.READ)
        if channel.member(identity.user_id) is None:
            return
        self._remove(identity, channel, identity.user_id)

    def update_preferences(
        self, identity: Identity, channel_id, notification_preference=None, muted_until=None,
        clear_mute=False,
    ) -> ChannelMember:
        channel = self.require(identity, channel_id, ChannelAction.READ)
        membership = channel.member(identity.user_id)
        if membership is None:
            raise ValidationError("Join the channel before changing its preferences")
        with session_manager():
            if notification_preference is not None:
                try:
                    membership.notification_preference = NotificationPreference(
                        notification_preference
                    ).value
                except ValueError:
                    raise ValidationError(
                        "Invalid notification preference",
                        fields={"notification_preference": ["invalid"]},
                    )
            if clear_mute:
                membership.muted_until = None
            elif muted_until is not None:
                membership.muted_until = muted_until
            db.session.add(membership)
        return membership

    def member_ids(self, channel_id) -> List[str]:
        rows = db.session.query(ChannelMember.user_id).filter_by(channel_id=channel_id).all()
        return [row.user_id for row in rows]

    def joined_channel_ids(self, identity: Identity):
        """Subquery of channels in the scoped tenant the caller has joined"""
        return (
            db.session.query(ChannelMember.channel_id)
            .join(Channel, Channel.id == ChannelMember.channel_id)
            .filter(ChannelMember.user_id == identity.user_id)
            .filter(Channel.tenant_id == identity.tenant_id)
        )

    def _allows(self, channel: Channel, membership: Optional[ChannelMember], action) -> bool:
        if action is ChannelAction.READ:
            return channel.is_public or membership is not None
        if action is ChannelAction.WRITE:
            if channel.is_archived:
                return False
            if membership is not None:
                return True
            if current_app.config["CHAT_PUBLIC_WRITE_REQUIRES_MEMBERSHIP"]:
                return False
            return channel.is_public and not channel.is_read_only
        if action is ChannelAction.MANAGE:
            return membership is not None and membership.can_manage
        return False

    def _get_in_tenant(self, identity: Identity, channel_id) -> Optional[Channel]:
        try:
            channel_id = int(channel_id)
        except (TypeError, ValueError):
            return None
        return Channel.query.filter_by(id=channel_id, tenant_id=identity.tenant_id).first()

    def _roster(self, channel: Channel):
        return (
            channel.members.join(User, User.id == ChannelMember.user_id)
            .order_by(ChannelMember.role, User.display_name)
            .all()
        )

    def _remove(self, identity: Identity, channel: Channel, user_id) -> None:
        membership = channel.member(user_id)
        if membership is None:
            return
        if membership.role == ChannelRole.OWNER.value:
            owners = channel.members.filter_by(role=ChannelRole.OWNER.value).count()
            if owners <= 1:
                raise ValidationError("The last owner cannot leave or be removed")
        with session_manager():
            db.session.delete(membership)
            AuditLog.log_action(
                "remove_member",
                "channel",
                entity_id=str(channel.id),
                tenant_id=channel.tenant_id,
                user_id=identity.user_id,
                changes={"member": user_id},
            )

    def _check_tenant_users(self, tenant_id, user_ids) -> None:
        """Channel members must belong to the channel's tenant (admins excepted)"""
        for user_id in user_ids:
            user = db.session.get(User, user_id) if user_id else None
            if user is None or not user.is_active:
                raise ValidationError("Unknown member", fields={"members": [user_id]})
            if user.role == UserRole.ADMIN.value:
                continue
            if TenantMembership.query.filter_by(user_id=user_id, tenant_id=tenant_id).first() is None:
                raise ValidationError("Unknown member", fields={"members": [user_id]})

    def _find_direct(self, tenant_id, user_a, user_b) -> Optional[Channel]:
        a_rows = db.session.query(ChannelMember.channel_id).filter_by(user_id=user_a)
        b_rows = db.session.query(ChannelMember.channel_id).filter_by(user_id=user_b)
        return (
            Channel.query.filter_by(
                tenant_id=tenant_id, type=ChannelType.DIRECT.value, is_archived=False
            )
            .filter(Channel.id.in_(a_rows))
            .filter(Channel.id.in_(b_rows))
            .order_by(Channel.id)
            .first()
        )
