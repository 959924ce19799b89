"""Request helpers shared by the JSON blueprints."""
from typing import Any, Dict, Optional

from flask import current_app, jsonify, request

from ryme.commands import CommandExecutor, decode
from ryme.exceptions import NotFoundError
from ryme.offline.gate import ConnectivityGate


def get_executor() -> CommandExecutor:
    return current_app.extensions['executor']


def get_gate() -> ConnectivityGate:
    return current_app.extensions['gate']


def json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def dispatch(status: int = 200, payload: Optional[Dict[str, Any]] = None):
    """
    Decode the current request into a command and submit it through the gate.

    Queued (offline) calls answer 202 with the optimistic response.
    """
    command = decode(request.method, request.path, json_body() if payload is None else payload)
    result = get_gate().submit(command)
    if isinstance(result, dict) and result.get('_offline'):
        return jsonify({'data': result}), 202
    return jsonify({'data': result}), status


def read(label: Optional[str] = None):
    """Serve the current GET path; single resources answer 404 when missing."""
    data = get_executor().read(request.path, request.args)
    if data is None and label:
        raise NotFoundError(f'{label} not found')
    return jsonify({'data': data})
