"""Recycle bin endpoints."""
from flask import Blueprint

from ryme.blueprints.common import dispatch, read

recycle_bin_bp = Blueprint('recycle_bin', __name__)


@recycle_bin_bp.route('/recycle-bin', methods=['GET'])
def list_entries():
    return read()


@recycle_bin_bp.route('/recycle-bin/sweep', methods=['POST'])
def sweep():
    """Permanently delete every expired entry."""
    return dispatch()


@recycle_bin_bp.route('/recycle-bin/<entry_id>/restore', methods=['POST'])
def restore(entry_id):
    return dispatch()


@recycle_bin_bp.route('/recycle-bin/<entry_id>', methods=['DELETE'])
def purge(entry_id):
    return dispatch()
