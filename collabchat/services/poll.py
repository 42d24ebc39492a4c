# collabchat/services/poll.py
"""Long-poll delivery of new messages.

A poll request checks for messages after the client's cursor and, when there
are none, parks on a per-tenant condition until an append in that tenant
wakes it, the check interval passes, or the timeout expires. The wait is a
``threading.Condition`` so under gunicorn's gevent worker a parked poll is a
greenlet, not a blocked OS thread. With the redis backend, appends in one
worker process also wake pollers in every other process.
"""
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional

from flask import current_app
from redis.exceptions import RedisError

from collabchat.extensions import db
from collabchat.core.constants import ChannelAction
from collabchat.core.exceptions import ForbiddenChannel, ForbiddenTenant
from collabchat.core.metrics import metrics
from collabchat.models import Message
from .identity import Identity
from .messages import parse_id

logger = logging.getLogger(__name__)


class PollStatus(Enum):
    NEW_DATA = "new_data"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass
class PollResult:
    status: PollStatus
    messages: List[Message] = field(default_factory=list)
    last_message_id: int = 0
    unread_counts: Dict[int, Dict[str, int]] = field(default_factory=dict)
    # Only set when the poll watched a single channel
    typing_users: Optional[List[dict]] = None

    def to_dict(self):
        data = {
            "status": self.status.value,
            "messages": [message.to_dict() for message in self.messages],
            "last_message_id": self.last_message_id,
            "unread_counts": {str(channel_id): counts for channel_id, counts in self.unread_counts.items()},
        }
        if self.typing_users is not None:
            data["typing_users"] = self.typing_users
        return data


class MessageNotifier:
    """Wakes waiting pollers when a tenant receives a message"""

    def __init__(self, redis_client=None, channel="collabchat:messages"):
        self.redis = redis_client
        self.channel = channel
        self._lock = threading.Lock()
        self._conditions: Dict[str, threading.Condition] = {}
        self._generations: Dict[str, int] = {}
        self._stopped = threading.Event()
        self._pubsub = None
        self._thread: Optional[threading.Thread] = None

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def generation(self, tenant_id: str) -> int:
        """Counter bumped on every wake-up of the tenant; read it before checking the store"""
        with self._condition(tenant_id):
            return self._generations.get(tenant_id, 0)

    def publish(self, tenant_id: str, message_id: int) -> None:
        self.notify_local(tenant_id)
        if self.redis is None:
            return
        try:
            payload = json.dumps({"tenant_id": tenant_id, "message_id": message_id})
            self.redis.publish(self.channel, payload)
        except RedisError as e:
            # Local pollers are already woken; remote ones fall back to the poll interval
            logger.warning(f"Message notification publish failed: {e}")

    def notify_local(self, tenant_id: str) -> None:
        condition = self._condition(tenant_id)
        with condition:
            self._generations[tenant_id] = self._generations.get(tenant_id, 0) + 1
            condition.notify_all()

    def wait(self, tenant_id: str, generation: int, timeout: float) -> bool:
        """Block until the tenant's generation moves past ``generation`` or the timeout ends"""
        condition = self._condition(tenant_id)
        with condition:
            return condition.wait_for(
                lambda: self.stopped or self._generations.get(tenant_id, 0) != generation,
                timeout=max(timeout, 0),
            ) and not self.stopped

    def start(self) -> None:
        """Subscribe to the redis channel and relay wake-ups from other processes"""
        if self.redis is None or self._thread is not None:
            return
        self._pubsub = self.redis.pubsub(ignore_subscribe_messages=True)
        self._pubsub.subscribe(self.channel)
        self._thread = threading.Thread(
            target=self._subscriber_loop, daemon=True, name="collabchat-notifier"
        )
        self._thread.start()
        logger.info(f"Message notifier subscribed to {self.channel}")

    def shutdown(self) -> None:
        self._stopped.set()
        with self._lock:
            conditions = list(self._conditions.values())
        for condition in conditions:
            with condition:
                condition.notify_all()
        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None

    def _subscriber_loop(self) -> None:
        while not self.stopped:
            try:
                message = self._pubsub.get_message(timeout=1.0)
            except RedisError as e:
                logger.warning(f"Message notifier lost its subscription: {e}")
                time.sleep(1.0)
                continue
            if not message or message.get("type") != "message":
                continue
            try:
                payload = json.loads(message["data"])
                tenant_id = payload["tenant_id"]
            except (ValueError, KeyError, TypeError):
                logger.warning("Ignoring malformed message notification")
                continue
            self.notify_local(tenant_id)

    def _condition(self, tenant_id: str) -> threading.Condition:
        with self._lock:
            condition = self._conditions.get(tenant_id)
            if condition is None:
                condition = self._conditions[tenant_id] = threading.Condition()
            return condition


class PollDispatcher:
    def __init__(self, identity, channels, message_log, notifier: MessageNotifier,
                 read_state=None, presence=None):
        self.identity = identity
        self.channels = channels
        self.message_log = message_log
        self.notifier = notifier
        self.read_state = read_state
        self.presence = presence

    def clamp_timeout(self, timeout_seconds) -> float:
        config = current_app.config
        if timeout_seconds is None or timeout_seconds == "":
            timeout = float(config["CHAT_POLL_DEFAULT_TIMEOUT"])
        else:
            try:
                timeout = float(timeout_seconds)
            except (TypeError, ValueError):
                timeout = float(config["CHAT_POLL_DEFAULT_TIMEOUT"])
        return max(0.0, min(timeout, float(config["CHAT_POLL_MAX_TIMEOUT"])))

    def poll(
        self,
        identity: Identity,
        since_id,
        channel_id=None,
        timeout_seconds=None,
        is_cancelled: Optional[Callable[[], bool]] = None,
    ) -> PollResult:
        """Return messages after ``since_id`` as soon as any exist, or an empty result on timeout"""
        since_id = parse_id(since_id, "since_id") or 0
        timeout = self.clamp_timeout(timeout_seconds)
        interval = float(current_app.config["CHAT_POLL_INTERVAL"])
        tenant_id = identity.tenant_id

        channel_ids = None
        if channel_id is not None and channel_id != "":
            channel_ids = [self.channels.require(identity, channel_id, ChannelAction.READ).id]

        metrics.poll_started()
        try:
            return self._run(identity, since_id, tenant_id, channel_ids, timeout, interval, is_cancelled)
        finally:
            metrics.poll_finished()

    def _run(self, identity, since_id, tenant_id, channel_ids, timeout, interval, is_cancelled):
        started = time.monotonic()
        deadline = started + timeout
        while True:
            identity = self.identity.revalidate(identity)
            if identity.tenant_id != tenant_id:
                raise ForbiddenTenant("Active tenant changed during poll")
            if channel_ids and not self.channels.authorize(identity, channel_ids[0], ChannelAction.READ):
                raise ForbiddenChannel()

            generation = self.notifier.generation(tenant_id)
            messages = self.message_log.fetch_since(identity, since_id, channel_ids)
            if messages:
                return self._finish(
                    identity, PollStatus.NEW_DATA, started, messages, messages[-1].id, channel_ids
                )

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return self._finish(
                    identity, PollStatus.TIMEOUT, started, [], since_id, channel_ids
                )
            if self.notifier.stopped or (is_cancelled is not None and is_cancelled()):
                return self._finish(
                    identity, PollStatus.CANCELLED, started, [], since_id, channel_ids
                )

            # Give the connection back to the pool while parked
            db.session.rollback()
            self.notifier.wait(tenant_id, generation, min(interval, remaining))

    def _finish(self, identity, status, started, messages, last_message_id, channel_ids=None) -> PollResult:
        metrics.track_poll(status.value, time.monotonic() - started)
        result = PollResult(status=status, messages=messages, last_message_id=last_message_id)
        if status == PollStatus.CANCELLED:
            return result

        channel_id = channel_ids[0] if channel_ids else None
        if self.read_state is not None:
            result.unread_counts = self.read_state.unread_counts(identity)
        if self.presence is not None:
            self.presence.touch(identity, channel_id)
            if channel_id is not None:
                result.typing_users = self.presence.typing_users(identity, channel_id)
        return result
