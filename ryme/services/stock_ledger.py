"""
Stock ledger: the mark-paid transition.

Marking an order paid is the only operation that moves stock. All stock
decrements and the status flip are committed together or not at all.
"""
import logging
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, List, Optional

from ryme.blueprints.metrics import mark_paid_conflict_retries_total, orders_marked_paid_total
from ryme.exceptions import ConflictError, NotFoundError, InsufficientStockError
from ryme.models import Order, PaymentStatus, ActivityAction
from ryme.services.activity_log_service import log_activity
from ryme.services.transaction import Transaction, run_transaction
from ryme.utils.formatters import utcnow

logger = logging.getLogger(__name__)


def deduct_stock_for_order(tx: Transaction, order_id: int, paid_at: datetime) -> List[Dict[str, Any]]:
    """
    Validate stock for every item and stage the decrements plus the status flip.

    Nothing is written until every check passed.

    Returns:
        list of {'product_id', 'product_name', 'quantity', 'old_stock', 'new_stock'}
    """
    order = tx.read('order', order_id)
    if order is None:
        raise NotFoundError(f'Order {order_id} not found')

    if order['payment_status'] == PaymentStatus.PAID.value:
        raise ConflictError(f'Order {order_id} is already paid')

    # Aggregate demand per product (a product may appear on several lines)
    demand = OrderedDict()
    for item in order['items']:
        entry = demand.setdefault(item['product_id'], {'name': item['product_name'], 'quantity': 0})
        entry['quantity'] += int(item['quantity'])

    changes = []
    for product_id, wanted in demand.items():
        product = tx.read('product', product_id)
        if product is None:
            raise NotFoundError(f'Product {wanted["name"]} not found')

        current_stock = int(product['stock_quantity'] or 0)
        if current_stock < wanted['quantity']:
            raise InsufficientStockError(product['name'], wanted['quantity'], current_stock)

        changes.append({
            'product_id': product_id,
            'product_name': product['name'],
            'quantity': wanted['quantity'],
            'old_stock': current_stock,
            'new_stock': current_stock - wanted['quantity'],
        })

    for change in changes:
        tx.write('product', change['product_id'], {'stock_quantity': change['new_stock']})

    tx.write('order', order_id, {
        'payment_status': PaymentStatus.PAID.value,
        'paid_at': paid_at,
    })
    return changes


def mark_order_paid(
    session,
    order_id: int,
    *,
    attempts: int = 5,
    backoff_base: float = 0.05,
    now: Optional[datetime] = None,
) -> Order:
    """
    Transition an order Pending -> Paid and deduct stock atomically.

    Raises:
        NotFoundError: order or a referenced product no longer exists
        ConflictError: order already paid, or conflicts persisted past `attempts`
        InsufficientStockError: a product lacks stock (nothing is deducted)
    """
    paid_at = now or utcnow()

    def _on_retry(attempt, exc):
        mark_paid_conflict_retries_total.inc()

    def _log_paid(changes):
        log_activity(
            session, ActivityAction.UPDATE, 'order',
            f'Order #{order_id} marked as paid',
            data={'payment_status': PaymentStatus.PAID.value, 'stock_changes': changes},
            entity_id=order_id
        )

    changes = run_transaction(
        session,
        lambda tx: deduct_stock_for_order(tx, order_id, paid_at),
        attempts=attempts,
        backoff_base=backoff_base,
        on_retry=_on_retry,
        before_commit=_log_paid,
    )

    orders_marked_paid_total.inc()
    for change in changes:
        logger.info(
            f"[STOCK] Product {change['product_id']} {change['old_stock']} -> {change['new_stock']} "
            f"(order {order_id})"
        )
    return session.get(Order, order_id)
