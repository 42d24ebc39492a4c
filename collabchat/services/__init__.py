# collabchat/services/__init__.py
import logging
from dataclasses import dataclass

import redis
from flask import current_app

from .identity import Identity, IdentityResolver, LoginResult
from .channels import ChannelRegistry
from .messages import MessageLog, MessagePage
from .read_state import ReadStateTracker
from .reactions import ReactionService
from .presence import PresenceTracker
from .poll import MessageNotifier, PollDispatcher, PollResult, PollStatus

logger = logging.getLogger(__name__)

EXTENSION_KEY = "collabchat"


@dataclass
class Services:
    identity: IdentityResolver
    channels: ChannelRegistry
    messages: MessageLog
    read_state: ReadStateTracker
    reactions: ReactionService
    presence: PresenceTracker
    notifier: MessageNotifier
    poll: PollDispatcher


def build_notifier(app) -> MessageNotifier:
    backend = app.config.get("CHAT_NOTIFY_BACKEND", "local")
    if backend == "redis":
        client = redis.from_url(app.config["REDIS_URL"])
        notifier = MessageNotifier(client, channel=app.config["CHAT_NOTIFY_CHANNEL"])
        notifier.start()
        return notifier
    if backend != "local":
        logger.warning(f"Unknown CHAT_NOTIFY_BACKEND {backend!r}, using local notifications")
    return MessageNotifier()


def init_services(app, notifier: MessageNotifier = None) -> Services:
    """Wire the chat services together and attach them to the app"""
    notifier = notifier or build_notifier(app)
    identity = IdentityResolver()
    channels = ChannelRegistry()
    read_state = ReadStateTracker(channels)
    messages = MessageLog(channels, read_state, notifier)
    channels.message_log = messages
    reactions = ReactionService(messages)
    presence = PresenceTracker(channels)
    poll = PollDispatcher(
        identity, channels, messages, notifier, read_state=read_state, presence=presence
    )

    services = Services(
        identity=identity,
        channels=channels,
        messages=messages,
        read_state=read_state,
        reactions=reactions,
        presence=presence,
        notifier=notifier,
        poll=poll,
    )
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]


__all__ = [
    "Identity",
    "IdentityResolver",
    "LoginResult",
    "ChannelRegistry",
    "MessageLog",
    "MessagePage",
    "ReadStateTracker",
    "ReactionService",
    "PresenceTracker",
    "MessageNotifier",
    "PollDispatcher",
    "PollResult",
    "PollStatus",
    "Services",
    "init_services",
    "get_services",
]
