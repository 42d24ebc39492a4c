# collabchat/api/admin/routes.py
"""Maintenance of the credential and tenant stores. Admin only."""
from flask import Blueprint, jsonify, request
import logging

from collabchat.extensions import db
from collabchat.core.audit import audit_action
from collabchat.core.constants import UserRole, UserStatus
from collabchat.core.database import session_manager
from collabchat.core.exceptions import NotFound, ValidationError
from collabchat.core.middleware import session_required
from collabchat.core.monitoring import capture_error
from collabchat.core.permissions import admin_required
from collabchat.models import User, Tenant, TenantMembership
from collabchat.services import get_services
from .schemas import (
    UserCreateSchema,
    UserUpdateSchema,
    TenantCreateSchema,
    TenantUpdateSchema,
    TenantMemberSchema,
)

logger = logging.getLogger(__name__)
admin_bp = Blueprint("admin", __name__)

user_create_schema = UserCreateSchema()
user_update_schema = UserUpdateSchema()
tenant_create_schema = TenantCreateSchema()
tenant_update_schema = TenantUpdateSchema()
tenant_member_schema = TenantMemberSchema()


def _get_user(user_id):
    user = User.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def _get_tenant(tenant_id):
    tenant = Tenant.get_by_id(tenant_id)
    if tenant is None:
        raise NotFound("Tenant not found")
    return tenant


def _user_payload(user):
    data = user.to_dict()
    data["memberships"] = [m.to_dict() for m in user.memberships.all()]
    return data


@admin_bp.route("/users", methods=["POST"])
@session_required
@admin_required
@audit_action("create", "user")
@capture_error
def create_user(identity):
    data = user_create_schema.load(request.get_json(silent=True) or {})
    email = data["email"].strip().lower()
    if User.find_by_email(email):
        raise ValidationError("Email already registered", fields={"email": ["exists"]})

    tenant_ids = list(dict.fromkeys(data["tenant_ids"]))
    if data["role"] == UserRole.STANDARD_USER.value and len(tenant_ids) != 1:
        raise ValidationError(
            "A standard user belongs to exactly one tenant", fields={"tenant_ids": ["invalid"]}
        )
    tenants = [_get_tenant(tenant_id) for tenant_id in tenant_ids]

    with session_manager():
        user = User(
            email=email,
            display_name=data.get("display_name"),
            role=data["role"],
            status=data["status"],
        )
        user.password = data["password"]
        db.session.add(user)
        db.session.flush()
        for index, tenant in enumerate(tenants):
            TenantMembership.attach(user, tenant, is_primary=index == 0)

    logger.info(f"User {user.id} created by {identity.user_id}")
    return jsonify({"user": _user_payload(user)}), 201


@admin_bp.route("/users/<user_id>", methods=["GET"])
@session_required
@admin_required
@capture_error
def get_user(identity, user_id):
    return jsonify({"user": _user_payload(_get_user(user_id))})


@admin_bp.route("/users/<user_id>", methods=["PATCH"])
@session_required
@admin_required
@audit_action("update", "user", get_entity_id=lambda kwargs: kwargs.get("user_id"))
@capture_error
def update_user(identity, user_id):
    """Change role, status or display name. Role and status changes end the user's sessions."""
    data = user_update_schema.load(request.get_json(silent=True) or {})
    user = _get_user(user_id)
    revoke = False

    with session_manager():
        if "role" in data and data["role"] != user.role:
            if data["role"] == UserRole.STANDARD_USER.value:
                memberships = user.memberships.all()
                if len(memberships) != 1:
                    raise ValidationError(
                        "A standard user must belong to exactly one tenant",
                        fields={"role": ["invalid"]},
                    )
                memberships[0].is_primary = True
                db.session.add(memberships[0])
            user.role = data["role"]
            revoke = True

        if "status" in data and data["status"] != user.status:
            user.status = data["status"]
            revoke = revoke or data["status"] != UserStatus.ACTIVE.value

        if "display_name" in data:
            user.display_name = data["display_name"]

        db.session.add(user)
        if revoke:
            revoked = get_services().identity.revoke_user_sessions(user.id)
            logger.info(f"Revoked {revoked} sessions of user {user.id}")

    return jsonify({"user": _user_payload(user)})


@admin_bp.route("/tenants", methods=["GET"])
@session_required
@admin_required
@capture_error
def list_tenants(identity):
    tenants = Tenant.query.order_by(Tenant.name).all()
    return jsonify({"tenants": [tenant.to_dict() for tenant in tenants]})


@admin_bp.route("/tenants", methods=["POST"])
@session_required
@admin_required
@audit_action("create", "tenant")
@capture_error
def create_tenant(identity):
    data = tenant_create_schema.load(request.get_json(silent=True) or {})
    if Tenant.query.filter_by(code=data["code"]).first():
        raise ValidationError("Tenant code already in use", fields={"code": ["exists"]})

    tenant = Tenant.create(code=data["code"], name=data["name"])
    logger.info(f"Tenant {tenant.code} created by {identity.user_id}")
    return jsonify({"tenant": tenant.to_dict()}), 201


@admin_bp.route("/tenants/<tenant_id>", methods=["PATCH"])
@session_required
@admin_required
@audit_action("update", "tenant", get_entity_id=lambda kwargs: kwargs.get("tenant_id"))
@capture_error
def update_tenant(identity, tenant_id):
    data = tenant_update_schema.load(request.get_json(silent=True) or {})
    tenant = _get_tenant(tenant_id)
    with session_manager():
        for key, value in data.items():
            setattr(tenant, key, value)
        db.session.add(tenant)
    return jsonify({"tenant": tenant.to_dict()})


@admin_bp.route("/tenants/<tenant_id>/members", methods=["POST"])
@session_required
@admin_required
@audit_action("attach", "tenant_membership", get_entity_id=lambda kwargs: kwargs.get("tenant_id"))
@capture_error
def add_tenant_member(identity, tenant_id):
    data = tenant_member_schema.load(request.get_json(silent=True) or {})
    tenant = _get_tenant(tenant_id)
    user = _get_user(data["user_id"])
    with session_manager():
        membership = TenantMembership.attach(user, tenant, is_primary=data["is_primary"])
    return jsonify({"membership": membership.to_dict()}), 201


@admin_bp.route("/tenants/<tenant_id>/members/<user_id>", methods=["DELETE"])
@session_required
@admin_required
@audit_action("detach", "tenant_membership", get_entity_id=lambda kwargs: kwargs.get("tenant_id"))
@capture_error
def remove_tenant_member(identity, tenant_id, user_id):
    tenant = _get_tenant(tenant_id)
    user = _get_user(user_id)
    with session_manager():
        removed = TenantMembership.detach(user, tenant)
    if not removed:
        raise NotFound("Membership not found")
    return jsonify({"message": "Membership removed"})
