"""Activity log endpoint (read-only)."""
from flask import Blueprint

from ryme.blueprints.common import read

activity_log_bp = Blueprint('activity_log', __name__)


@activity_log_bp.route('/activity-log', methods=['GET'])
def list_activity():
    """
    Newest entries first.

    Query params: entity_type, action, limit (default 100), offset.
    """
    return read()
