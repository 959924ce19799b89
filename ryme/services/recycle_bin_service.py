"""
Recycle bin service: soft-deleted orders with a fixed time-to-live.

Entries expire RECYCLE_BIN_TTL_DAYS after deletion. They can be restored
as new live orders, purged one by one, or swept in bulk once expired.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ryme.exceptions import NotFoundError, ValidationError
from ryme.models import Order, OrderItem, RecycleBinEntry, ActivityAction
from ryme.services.activity_log_service import log_activity
from ryme.utils.formatters import parse_iso_datetime, to_json_safe, utcnow

logger = logging.getLogger(__name__)

RECYCLE_BIN_TTL_DAYS = 50
BOOKKEEPING_FIELDS = ('id', 'original_id', 'deleted_at', 'expires_at', 'type')
RESTORABLE_TYPES = {'order'}


def recycle_order(session, order: Order, now: Optional[datetime] = None,
                  ttl_days: Optional[int] = None) -> RecycleBinEntry:
    """
    Copy an order into the recycle bin. The caller deletes the live order and commits.
    """
    deleted_at = now or utcnow()
    entry = RecycleBinEntry(
        original_id=str(order.id),
        type='order',
        document=to_json_safe(order.to_dict()),
        deleted_at=deleted_at,
        expires_at=deleted_at + timedelta(days=ttl_days or RECYCLE_BIN_TTL_DAYS),
    )
    session.add(entry)
    session.flush()
    return entry


def list_entries(session) -> List[RecycleBinEntry]:
    """All entries, most recently deleted first."""
    return session.query(RecycleBinEntry).order_by(
        RecycleBinEntry.deleted_at.desc(), RecycleBinEntry.id.desc()
    ).all()


def get_entry(session, entry_id: int) -> RecycleBinEntry:
    """Get an entry or raise NotFoundError."""
    entry = session.get(RecycleBinEntry, entry_id)
    if not entry:
        raise NotFoundError(f'Item {entry_id} not found in recycle bin')
    return entry


def _order_from_document(document: Dict[str, Any], restored_at: datetime) -> Order:
    data = {k: v for k, v in document.items() if k not in BOOKKEEPING_FIELDS}
    discount = data.get('discount') or {}

    order = Order(
        customer_name=data['customer_name'],
        customer_address=data.get('customer_address') or '',
        order_date=parse_iso_datetime(data.get('order_date')) or restored_at,
        payment_status=data.get('payment_status') or 'Pending',
        paid_at=parse_iso_datetime(data.get('paid_at')),
        restored_at=restored_at,
        subtotal=Decimal(str(data.get('subtotal') or 0)),
        discount_type=discount.get('type') or 'none',
        discount_value=Decimal(str(discount.get('value') or 0)),
        discount_amount=Decimal(str(data.get('discount_amount') or 0)),
        total_sales_price=Decimal(str(data.get('total_sales_price') or 0)),
        total_profit=Decimal(str(data.get('total_profit') or 0)),
    )
    for position, item in enumerate(data.get('items') or []):
        order.items.append(OrderItem(
            position=position,
            product_id=int(item['product_id']),
            product_name=item['product_name'],
            sorting_code=item.get('sorting_code'),
            quantity=int(item['quantity']),
            sales_price_at_time=Decimal(str(item['sales_price_at_time'])),
            cost_at_time=Decimal(str(item.get('cost_at_time') or 0)),
            discount_percentage=Decimal(str(item.get('discount_percentage') or 0)),
            effective_price=Decimal(str(item.get('effective_price') or item['sales_price_at_time'])),
            profit_at_time=Decimal(str(item.get('profit_at_time') or 0)),
            line_total=Decimal(str(item.get('line_total') or 0)),
        ))
    return order


def restore_entry(session, entry_id: int, now: Optional[datetime] = None) -> Order:
    """
    Re-insert a recycled order as a new live order (new id, restored_at set).

    Raises:
        NotFoundError: entry does not exist
        ValidationError: entry type cannot be restored
    """
    entry = get_entry(session, entry_id)
    if entry.type not in RESTORABLE_TYPES:
        raise ValidationError(f'Items of type {entry.type} cannot be restored')

    restored_at = now or utcnow()
    original_id = entry.original_id

    try:
        order = _order_from_document(entry.document, restored_at)
        session.add(order)
        session.delete(entry)
        session.flush()

        log_activity(
            session, ActivityAction.RESTORE, entry.type,
            f'Restored {entry.type} #{original_id} as #{order.id}',
            data=order.to_dict(), entity_id=order.id
        )
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[RECYCLE] Entry {entry_id} restored as order {order.id}")
    return order


def purge_entry(session, entry_id: int) -> Dict[str, Any]:
    """
    Permanently delete one entry.

    Raises:
        NotFoundError: entry does not exist
    """
    entry = get_entry(session, entry_id)

    try:
        session.delete(entry)
        log_activity(
            session, ActivityAction.PERMANENT_DELETE, 'recycle_bin',
            f'Permanently deleted item #{entry_id}',
            data={'original_id': entry.original_id, 'type': entry.type}, entity_id=entry_id
        )
        session.commit()
    except Exception:
        session.rollback()
        raise

    return {'id': entry_id}


def sweep_expired(session, now: Optional[datetime] = None) -> int:
    """
    Delete every entry whose expires_at is in the past, in one commit.

    Idempotent: with nothing expired it writes nothing, not even a log entry.

    Returns:
        Number of entries removed
    """
    now = now or utcnow()

    try:
        expired = session.query(RecycleBinEntry).filter(
            RecycleBinEntry.expires_at < now
        ).all()

        if not expired:
            return 0

        for entry in expired:
            session.delete(entry)

        count = len(expired)
        log_activity(
            session, ActivityAction.AUTO_CLEANUP, 'recycle_bin',
            f'Auto-deleted {count} expired items',
            data={'count': count, 'original_ids': [e.original_id for e in expired]}
        )
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[RECYCLE] Sweep removed {count} expired entries")
    return count
