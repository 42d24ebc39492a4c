# collabchat/api/presence/routes.py
from flask import Blueprint, jsonify, request
import logging

from collabchat.core.middleware import session_required
from collabchat.core.monitoring import capture_error
from collabchat.services import get_services
from .schemas import PresenceUpdateSchema, TypingSchema

logger = logging.getLogger(__name__)
presence_bp = Blueprint("presence", __name__)

update_schema = PresenceUpdateSchema()
typing_schema = TypingSchema()

TRUTHY = {"1", "true", "yes"}


@presence_bp.route("", methods=["GET"])
@session_required
@capture_error
def get_presence(identity):
    """Presence of the active tenant, or of one channel's members"""
    presence = get_services().presence.presence(
        identity,
        channel_id=request.args.get("channel_id") or None,
        include_self=request.args.get("include_self", "").lower() in TRUTHY,
    )
    return jsonify(presence)


@presence_bp.route("", methods=["POST"])
@session_required
@capture_error
def update_presence(identity):
    data = update_schema.load(request.get_json(silent=True) or {})
    presence = get_services().presence.update(
        identity,
        data["status"],
        status_message=data.get("status_message"),
        current_channel_id=data.get("current_channel_id"),
    )
    return jsonify({"presence": presence})


@presence_bp.route("/typing", methods=["POST"])
@session_required
@capture_error
def set_typing(identity):
    data = typing_schema.load(request.get_json(silent=True) or {})
    get_services().presence.set_typing(identity, data["channel_id"], data["is_typing"])
    return jsonify({"channel_id": data["channel_id"], "is_typing": data["is_typing"]})
