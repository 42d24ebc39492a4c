# collabchat/api/tenant/routes.py
from flask import Blueprint, jsonify, request
import logging

from collabchat.core.middleware import session_required
from collabchat.core.monitoring import capture_error
from collabchat.models import Tenant
from collabchat.services import get_services
from collabchat.api.auth.routes import identity_payload
from collabchat.api.auth.schemas import TenantSwitchSchema

logger = logging.getLogger(__name__)
tenant_bp = Blueprint("tenant", __name__)

switch_schema = TenantSwitchSchema()


@tenant_bp.route("/switch", methods=["POST"])
@session_required
@capture_error
def switch_tenant(identity):
    """Move the caller's session to another tenant"""
    data = switch_schema.load(request.get_json(silent=True) or {})
    identity = get_services().identity.switch_tenant(identity, data["tenant_id"])

    payload = identity_payload(identity)
    tenant = Tenant.get_by_id(identity.active_tenant_id)
    payload["active_tenant"] = tenant.snapshot() if tenant else None
    return jsonify(payload)


@tenant_bp.route("/available", methods=["GET"])
@session_required
@capture_error
def available_tenants(identity):
    return jsonify({"tenants": get_services().identity.available_tenants(identity)})
