"""Dashboard aggregates."""
from flask import Blueprint

from ryme.blueprints.common import read

dashboard_bp = Blueprint('dashboard', __name__)


@dashboard_bp.route('/dashboard-stats', methods=['GET'])
def dashboard_stats():
    """Revenue/profit per day and the top products by quantity sold."""
    return read()
