"""
Offline queue control.

Lets the host report connectivity changes, trigger a replay, inspect the
pending queue and drop a head entry that can never succeed.
"""
from flask import Blueprint, jsonify

from ryme.blueprints.common import get_gate, json_body
from ryme.exceptions import NotFoundError, ValidationError

sync_bp = Blueprint('sync', __name__, url_prefix='/sync')


@sync_bp.route('/status', methods=['GET'])
def status():
    return jsonify({'data': get_gate().status()})


@sync_bp.route('/online', methods=['POST'])
def set_online():
    """Body: {"online": true|false}. Going online replays the queue."""
    online = json_body().get('online')
    if not isinstance(online, bool):
        raise ValidationError('online must be true or false')

    gate = get_gate()
    replay = gate.set_online(online)
    return jsonify({'data': {**gate.status(), 'replay': replay}})


@sync_bp.route('/replay', methods=['POST'])
def replay():
    return jsonify({'data': get_gate().replay()})


@sync_bp.route('/queue', methods=['GET'])
def pending():
    return jsonify({'data': get_gate().queue.pending()})


@sync_bp.route('/queue/head', methods=['DELETE'])
def discard_head():
    discarded = get_gate().queue.discard_head()
    if discarded is None:
        raise NotFoundError('Offline queue is empty')
    return jsonify({'data': discarded})
