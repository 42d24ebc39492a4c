# collabchat/api/metrics/routes.py
from flask import Blueprint, jsonify
from collabchat.core.metrics import get_current_metrics
from collabchat.core.middleware import session_required
from collabchat.core.permissions import admin_required

metrics_bp = Blueprint('metrics', __name__)


@metrics_bp.route('/metrics')
@session_required
@admin_required
def get_metrics(identity):
    """Get application metrics"""
    return jsonify(get_current_metrics())
