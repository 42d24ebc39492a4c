from enum import Enum


class UserRole(Enum):
    ADMIN = "admin"
    SPECIAL_USER = "special_user"
    STANDARD_USER = "standard_user"


class UserStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class TenantStatus(Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ChannelType(Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    DIRECT = "direct"


class ChannelRole(Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MODERATOR = "moderator"
    MEMBER = "member"


class NotificationPreference(Enum):
    ALL = "all"
    MENTIONS = "mentions"
    NONE = "none"


class MessageType(Enum):
    TEXT = "text"
    SYSTEM = "system"
    FILE = "file"


class ChannelAction(Enum):
    READ = "read"
    WRITE = "write"
    MANAGE = "manage"


class PresenceStatus(Enum):
    ONLINE = "online"
    BUSY = "busy"
    AWAY = "away"
    DO_NOT_DISTURB = "do_not_disturb"
    OFFLINE = "offline"


# Channel roles allowed to archive, rename and remove members
MANAGING_CHANNEL_ROLES = {ChannelRole.OWNER.value, ChannelRole.ADMIN.value}

DELETED_MESSAGE_PLACEHOLDER = "[message deleted]"

# Presence listings are sorted by this order, then by name
PRESENCE_STATUS_ORDER = [status.value for status in PresenceStatus]
