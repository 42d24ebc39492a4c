# collabchat/api/messages/routes.py
from flask import Blueprint, jsonify, request
import logging

from collabchat.core.exceptions import ValidationError
from collabchat.core.middleware import session_required
from collabchat.core.monitoring import capture_error
from collabchat.services import get_services
from .schemas import MessageCreateSchema, MessageEditSchema, MarkReadSchema, ReactionSchema

logger = logging.getLogger(__name__)
messages_bp = Blueprint("messages", __name__)

create_schema = MessageCreateSchema()
edit_schema = MessageEditSchema()
mark_read_schema = MarkReadSchema()
reaction_schema = ReactionSchema()


@messages_bp.route("/messages", methods=["GET"])
@session_required
@capture_error
def list_messages(identity):
    channel_id = request.args.get("channel_id")
    if not channel_id:
        raise ValidationError("channel_id is required", fields={"channel_id": ["required"]})

    services = get_services()
    page = services.messages.list(
        identity,
        channel_id,
        before=request.args.get("before"),
        limit=request.args.get("limit"),
        parent_id=request.args.get("parent_message_id"),
    )
    reactions = services.reactions.summarize(identity, [message.id for message in page.messages])
    return jsonify(
        {
            "messages": [
                message.to_dict(
                    reply_count=page.reply_counts.get(message.id, 0),
                    reactions=reactions.get(message.id, []),
                )
                for message in page.messages
            ],
            "has_more": page.has_more,
            "next_before": page.next_before,
        }
    )


@messages_bp.route("/messages", methods=["POST"])
@session_required
@capture_error
def create_message(identity):
    data = create_schema.load(request.get_json(silent=True) or {})
    message = get_services().messages.append(
        identity,
        data["channel_id"],
        data["content"],
        parent_id=data.get("parent_message_id"),
    )
    return jsonify({"message": message.to_dict()}), 201


@messages_bp.route("/messages/<int:message_id>", methods=["PATCH"])
@session_required
@capture_error
def edit_message(identity, message_id):
    data = edit_schema.load(request.get_json(silent=True) or {})
    message = get_services().messages.edit(identity, message_id, data["content"])
    return jsonify({"message": message.to_dict()})


@messages_bp.route("/messages/<int:message_id>", methods=["DELETE"])
@session_required
@capture_error
def delete_message(identity, message_id):
    message = get_services().messages.delete(identity, message_id)
    return jsonify({"message": message.to_dict()})


@messages_bp.route("/messages/read", methods=["POST"])
@session_required
@capture_error
def mark_read(identity):
    data = mark_read_schema.load(request.get_json(silent=True) or {})
    state = get_services().read_state.mark_read(
        identity, data["channel_id"], data.get("last_message_id")
    )
    return jsonify({"read_state": state})


@messages_bp.route("/messages/last-id", methods=["GET"])
@session_required
@capture_error
def last_message_id(identity):
    last_id = get_services().messages.last_message_id(
        identity, request.args.get("channel_id") or None
    )
    return jsonify({"last_message_id": last_id})


@messages_bp.route("/unread-summary", methods=["GET"])
@session_required
@capture_error
def unread_summary(identity):
    summary = get_services().read_state.unread_summary(identity)
    return jsonify({"channels": {str(channel_id): entry for channel_id, entry in summary.items()}})


@messages_bp.route("/messages/<int:message_id>/reactions", methods=["GET"])
@session_required
@capture_error
def list_reactions(identity, message_id):
    return jsonify(get_services().reactions.summary(identity, message_id))


@messages_bp.route("/messages/<int:message_id>/reactions", methods=["POST"])
@session_required
@capture_error
def add_reaction(identity, message_id):
    data = reaction_schema.load(request.get_json(silent=True) or {})
    summary = get_services().reactions.add(identity, message_id, data["emoji"])
    return jsonify(summary), 201


@messages_bp.route("/messages/<int:message_id>/reactions", methods=["DELETE"])
@session_required
@capture_error
def remove_reaction(identity, message_id):
    emoji = request.args.get("emoji")
    if emoji is None:
        emoji = (request.get_json(silent=True) or {}).get("emoji")
    summary = get_services().reactions.remove(identity, message_id, emoji)
    return jsonify(summary)
