# collabchat/api/channels/routes.py
from flask import Blueprint, jsonify, request
import logging

from collabchat.core.middleware import session_required
from collabchat.core.monitoring import capture_error
from collabchat.services import get_services
from .schemas import (
    ChannelCreateSchema,
    ChannelUpdateSchema,
    ChannelMemberSchema,
    ChannelPreferencesSchema,
)

logger = logging.getLogger(__name__)
channels_bp = Blueprint("channels", __name__)

create_schema = ChannelCreateSchema()
update_schema = ChannelUpdateSchema()
member_schema = ChannelMemberSchema()
preferences_schema = ChannelPreferencesSchema()

TRUTHY = {"1", "true", "yes"}


@channels_bp.route("", methods=["GET"])
@session_required
@capture_error
def list_channels(identity):
    """Channels of the active tenant the caller can see"""
    channels = get_services().channels.list_channels(
        identity,
        include_archived=request.args.get("include_archived", "").lower() in TRUTHY,
        channel_type=request.args.get("type") or None,
    )
    return jsonify({"channels": channels})


@channels_bp.route("", methods=["POST"])
@session_required
@capture_error
def create_channel(identity):
    data = create_schema.load(request.get_json(silent=True) or {})
    registry = get_services().channels
    channel, created = registry.create_channel(
        identity,
        data.get("name"),
        channel_type=data["type"],
        members=data["members"],
        description=data.get("description"),
    )
    return (
        jsonify({"channel": channel.to_dict(channel.member(identity.user_id)), "created": created}),
        201 if created else 200,
    )


@channels_bp.route("/<int:channel_id>", methods=["GET"])
@session_required
@capture_error
def get_channel(identity, channel_id):
    include_members = request.args.get("include_members", "").lower() in TRUTHY
    channel = get_services().channels.get_channel(identity, channel_id, include_members)
    return jsonify({"channel": channel})


@channels_bp.route("/<int:channel_id>", methods=["PATCH"])
@session_required
@capture_error
def update_channel(identity, channel_id):
    data = update_schema.load(request.get_json(silent=True) or {})
    channel = get_services().channels.update_channel(identity, channel_id, data)
    return jsonify({"channel": channel.to_dict(channel.member(identity.user_id))})


@channels_bp.route("/<int:channel_id>/members", methods=["POST"])
@session_required
@capture_error
def add_member(identity, channel_id):
    data = member_schema.load(request.get_json(silent=True) or {})
    membership = get_services().channels.add_member(
        identity, channel_id, data["user_id"], role=data["role"]
    )
    return jsonify({"member": membership.to_dict()}), 201


@channels_bp.route("/<int:channel_id>/members/<user_id>", methods=["DELETE"])
@session_required
@capture_error
def remove_member(identity, channel_id, user_id):
    get_services().channels.remove_member(identity, channel_id, user_id)
    return jsonify({"message": "Member removed"})


@channels_bp.route("/<int:channel_id>/join", methods=["POST"])
@session_required
@capture_error
def join_channel(identity, channel_id):
    membership = get_services().channels.join(identity, channel_id)
    return jsonify({"member": membership.to_dict()})


@channels_bp.route("/<int:channel_id>/leave", methods=["POST"])
@session_required
@capture_error
def leave_channel(identity, channel_id):
    get_services().channels.leave(identity, channel_id)
    return jsonify({"message": "Left channel"})


@channels_bp.route("/<int:channel_id>/preferences", methods=["PUT"])
@session_required
@capture_error
def update_preferences(identity, channel_id):
    data = preferences_schema.load(request.get_json(silent=True) or {})
    membership = get_services().channels.update_preferences(
        identity,
        channel_id,
        notification_preference=data.get("notification_preference"),
        muted_until=data.get("muted_until"),
        clear_mute="muted_until" in data and data["muted_until"] is None,
    )
    return jsonify({"member": membership.to_dict()})
