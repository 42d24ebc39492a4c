# collabchat/api/chat/routes.py
from flask import Blueprint, jsonify, request
import logging

from collabchat.core.middleware import session_required, client_disconnected
from collabchat.core.monitoring import capture_error
from collabchat.services import get_services, PollStatus

logger = logging.getLogger(__name__)
chat_bp = Blueprint("chat", __name__)


@chat_bp.route("/poll", methods=["GET"])
@session_required
@capture_error
def poll(identity):
    """Long-poll for messages after ``since_id``.

    Returns as soon as anything new is visible; on timeout the message list
    is empty and the status is ``timeout``.
    """
    environ = request.environ
    result = get_services().poll.poll(
        identity,
        request.args.get("since_id"),
        channel_id=request.args.get("channel_id") or None,
        timeout_seconds=request.args.get("timeout"),
        is_cancelled=lambda: client_disconnected(environ),
    )
    if result.status is PollStatus.CANCELLED:
        logger.info(
            f"Poll by {identity.user_id} cancelled, client went away",
            extra={"tenant_id": identity.active_tenant_id},
        )
    return jsonify(result.to_dict())
