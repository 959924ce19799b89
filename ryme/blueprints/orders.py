"""
Order endpoints.

PUT /orders/<id> with {"action": "mark_paid"} marks the order paid and
deducts stock; any other PUT body is an edit.
"""
from flask import Blueprint

from ryme.blueprints.common import dispatch, read

orders_bp = Blueprint('orders', __name__)


@orders_bp.route('/orders', methods=['GET'])
def list_orders():
    return read()


@orders_bp.route('/orders', methods=['POST'])
def create_order():
    return dispatch(status=201)


@orders_bp.route('/orders/bulk-delete', methods=['POST'])
def bulk_delete_orders():
    """Delete several orders; each id succeeds or fails on its own."""
    return dispatch()


@orders_bp.route('/orders/<order_id>', methods=['GET'])
def get_order(order_id):
    return read(label=f'Order {order_id}')


@orders_bp.route('/orders/<order_id>', methods=['PUT'])
def update_order(order_id):
    return dispatch()


@orders_bp.route('/orders/<order_id>', methods=['DELETE'])
def delete_order(order_id):
    return dispatch()
