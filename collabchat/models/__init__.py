# collabchat/models/__init__.py
from .user import User
from .tenant import Tenant
from .membership import TenantMembership
from .session import AuthSession
from .channel import Channel, ChannelMember
from .message import Message
from .read_state import ReadState
from .audit_log import AuditLog
from .reaction import MessageReaction
from .presence import UserPresence, TypingIndicator

__all__ = [
    "User",
    "Tenant",
    "TenantMembership",
    "AuthSession",
    "Channel",
    "ChannelMember",
    "Message",
    "ReadState",
    "AuditLog",
    "MessageReaction",
    "UserPresence",
    "TypingIndicator",
]
