from flask import Blueprint, request, jsonify, current_app
import logging

from collabchat.extensions import limiter
from collabchat.core.database import isoformat
from collabchat.core.middleware import session_required
from collabchat.core.monitoring import capture_error
from collabchat.services import get_services
from .schemas import LoginSchema

logger = logging.getLogger(__name__)
auth_bp = Blueprint('auth', __name__)

login_schema = LoginSchema()


def identity_payload(identity):
    """Caller description shared by login, me and tenant switch responses"""
    return {
        'user': {
            'id': identity.user_id,
            'email': identity.email,
            'display_name': identity.display_name,
            'role': identity.role,
        },
        'active_tenant_id': identity.active_tenant_id,
        'expires_at': isoformat(identity.expires_at),
    }


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(lambda: current_app.config['LOGIN_RATE_LIMIT'])
@capture_error
def login():
    data = login_schema.load(request.get_json(silent=True) or {})

    result = get_services().identity.authenticate(
        data['email'],
        data['password'],
        ip_address=request.remote_addr,
        user_agent=request.user_agent.string,
    )

    payload = identity_payload(result.identity)
    payload['token'] = result.token
    payload['active_tenant'] = result.session.tenant_snapshot
    return jsonify(payload)


@auth_bp.route('/logout', methods=['POST'])
@session_required
@capture_error
def logout(identity):
    get_services().identity.logout(identity)
    return jsonify({'message': 'Logged out'})


@auth_bp.route('/me', methods=['GET'])
@session_required
@capture_error
def me(identity):
    payload = identity_payload(identity)
    payload['tenants'] = get_services().identity.available_tenants(identity)
    return jsonify(payload)
