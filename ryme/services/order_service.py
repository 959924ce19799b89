"""
Order service with line pricing, order-level discounts and edit auditing.

Handles order creation/edit from current product snapshots, the
mark-paid entry point and deletion into the recycle bin.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm.exc import StaleDataError

from ryme.exceptions import ValidationError, NotFoundError, ConflictError, InsufficientStockError
from ryme.models import Order, OrderItem, Product, PaymentStatus, DiscountType, ActivityAction
from ryme.services.activity_log_service import log_activity
from ryme.services.recycle_bin_service import recycle_order
from ryme.services.stock_ledger import mark_order_paid
from ryme.utils.formatters import money, to_decimal, utcnow

logger = logging.getLogger(__name__)

HUNDRED = Decimal('100')


# =====================================================
# PRICING HELPERS
# =====================================================

def _parse_quantity(value: Any) -> int:
    try:
        qty = to_decimal(value)
    except ValueError:
        raise ValidationError('Quantity must be a whole number greater than 0')
    if qty is None or qty <= 0 or qty != qty.to_integral_value():
        raise ValidationError('Quantity must be a whole number greater than 0')
    return int(qty)


def _parse_line_discount(value: Any) -> Decimal:
    try:
        discount = to_decimal(value, Decimal('0'))
    except ValueError:
        raise ValidationError('discount_percentage must be a number')
    if discount < 0 or discount > HUNDRED:
        raise ValidationError('discount_percentage must be between 0 and 100')
    return discount


def parse_discount(discount: Optional[Dict[str, Any]]) -> Tuple[str, Decimal]:
    """Normalize an order-level discount to (type, value)."""
    if not discount:
        return DiscountType.NONE.value, Decimal('0')

    discount_type = (discount.get('type') or DiscountType.NONE.value).lower()
    if discount_type not in {t.value for t in DiscountType}:
        raise ValidationError(f'Unknown discount type: {discount_type}')

    try:
        value = to_decimal(discount.get('value'), Decimal('0'))
    except ValueError:
        raise ValidationError('Discount value must be a number')
    if value < 0:
        raise ValidationError('Discount value cannot be negative')
    if discount_type == DiscountType.PERCENTAGE.value and value > HUNDRED:
        raise ValidationError('Percentage discount cannot exceed 100')
    if discount_type == DiscountType.NONE.value:
        value = Decimal('0')
    return discount_type, value


def effective_price(sales_price: Decimal, discount_percentage: Decimal) -> Decimal:
    """Line price after the line's own discount, before the order discount."""
    return money(Decimal(sales_price) * (HUNDRED - discount_percentage) / HUNDRED)


def discount_amount_for(subtotal: Decimal, discount_type: str, value: Decimal) -> Decimal:
    """Order-level discount amount, never larger than the subtotal."""
    if value <= 0:
        return Decimal('0.00')
    if discount_type == DiscountType.PERCENTAGE.value:
        amount = money(subtotal * value / HUNDRED)
    elif discount_type == DiscountType.FIXED.value:
        amount = money(value)
    else:
        amount = Decimal('0.00')
    return min(amount, subtotal)


def calculate_order_totals(lines: List[Dict[str, Any]], discount_type: str, discount_value: Decimal) -> Dict[str, Decimal]:
    """
    Compute subtotal, discount and net totals for priced lines.

    Each line needs quantity, effective_price and cost_at_time.
    """
    subtotal = Decimal('0.00')
    gross_profit = Decimal('0.00')
    for line in lines:
        subtotal += line['effective_price'] * line['quantity']
        gross_profit += (line['effective_price'] - line['cost_at_time']) * line['quantity']

    subtotal = money(subtotal)
    amount = discount_amount_for(subtotal, discount_type, discount_value)
    return {
        'subtotal': subtotal,
        'discount_amount': amount,
        'total_sales_price': subtotal - amount,
        'total_profit': money(gross_profit) - amount,
    }


def _price_items(session, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Resolve current product snapshots and price every requested line."""
    lines = []
    seen = set()

    for raw in items:
        if raw.get('product_id') in (None, ''):
            raise ValidationError('Every item needs a product_id')
        try:
            product_id = int(raw['product_id'])
        except (TypeError, ValueError):
            raise NotFoundError(f'Product {raw["product_id"]} not found')
        if product_id in seen:
            raise ValidationError(f'Product {product_id} appears more than once in the order')
        seen.add(product_id)

        quantity = _parse_quantity(raw.get('quantity'))
        line_discount = _parse_line_discount(raw.get('discount_percentage'))

        product = session.get(Product, product_id)
        if not product:
            raise NotFoundError(f'Product {product_id} not found')

        # Creation-time check only: stock is reserved when the order is paid
        if quantity > product.stock_quantity:
            raise InsufficientStockError(product.name, quantity, product.stock_quantity)

        price = effective_price(product.sales_price, line_discount)
        cost = money(product.cost_of_production)
        lines.append({
            'product_id': product.id,
            'product_name': product.name,
            'sorting_code': product.sorting_code,
            'quantity': quantity,
            'sales_price_at_time': money(product.sales_price),
            'cost_at_time': cost,
            'discount_percentage': line_discount,
            'effective_price': price,
            'profit_at_time': price - cost,
            'line_total': money(price * quantity),
        })

    return lines


def _validate_header(customer_name: Optional[str], items: Optional[List[Dict[str, Any]]]) -> str:
    name = (customer_name or '').strip()
    if not name:
        raise ValidationError('Customer name is required')
    if not items:
        raise ValidationError('Order must contain items')
    return name


def _fill_order(order: Order, customer_name: str, customer_address: Optional[str],
                lines: List[Dict[str, Any]], discount_type: str, discount_value: Decimal) -> None:
    totals = calculate_order_totals(lines, discount_type, discount_value)

    order.customer_name = customer_name
    order.customer_address = (customer_address or '').strip()
    order.discount_type = discount_type
    order.discount_value = money(discount_value)
    order.subtotal = totals['subtotal']
    order.discount_amount = totals['discount_amount']
    order.total_sales_price = totals['total_sales_price']
    order.total_profit = totals['total_profit']

    # Full overwrite, never merged
    order.items.clear()
    for position, line in enumerate(lines):
        order.items.append(OrderItem(position=position, **line))


# =====================================================
# PUBLIC API
# =====================================================

def get_order(session, order_id: int) -> Order:
    """Get an order or raise NotFoundError."""
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError(f'Order {order_id} not found')
    return order


def list_orders(session) -> List[Order]:
    """All orders, newest first."""
    return session.query(Order).order_by(Order.order_date.desc(), Order.id.desc()).all()


def create_order(
    session,
    customer_name: str,
    items: List[Dict[str, Any]],
    customer_address: Optional[str] = None,
    discount: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> Order:
    """
    Create a Pending order priced from current product snapshots.

    Args:
        session: SQLAlchemy session
        customer_name: Required customer name
        items: List of {'product_id', 'quantity', 'discount_percentage'}
        customer_address: Optional address
        discount: Optional {'type': 'none'|'percentage'|'fixed', 'value'}

    Raises:
        ValidationError: empty order, missing customer, invalid quantities/discounts
        NotFoundError: a product does not exist
        InsufficientStockError: quantity exceeds current stock
    """
    name = _validate_header(customer_name, items)
    discount_type, discount_value = parse_discount(discount)

    try:
        lines = _price_items(session, items)

        order = Order(
            order_date=now or utcnow(),
            payment_status=PaymentStatus.PENDING.value,
        )
        _fill_order(order, name, customer_address, lines, discount_type, discount_value)
        session.add(order)
        session.flush()

        log_activity(
            session, ActivityAction.CREATE, 'order',
            f'Order #{order.id} - {order.customer_name}',
            data=order.to_dict(), entity_id=order.id
        )
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"[ORDERS] Order {order.id} created, total {order.total_sales_price}")
    return order


def diff_order_items(old_items: List[Dict[str, Any]], new_items: List[Dict[str, Any]]) -> Dict[str, list]:
    """
    Summarize item changes by product id.

    Returns:
        {'added': [...], 'removed': [...], 'modified': [...]} where modified
        entries carry {'from', 'to'} for quantity and/or discount_percentage.
    """
    old_map = {item['product_id']: item for item in old_items}
    new_map = {item['product_id']: item for item in new_items}

    def _brief(item):
        return {
            'product_id': item['product_id'],
            'product_name': item['product_name'],
            'quantity': item['quantity'],
            'discount_percentage': Decimal(item['discount_percentage'] or 0),
        }

    added = [_brief(item) for pid, item in new_map.items() if pid not in old_map]
    removed = [_brief(item) for pid, item in old_map.items() if pid not in new_map]

    modified = []
    for pid, new_item in new_map.items():
        old_item = old_map.get(pid)
        if old_item is None:
            continue
        change = {}
        if int(old_item['quantity']) != int(new_item['quantity']):
            change['quantity'] = {'from': int(old_item['quantity']), 'to': int(new_item['quantity'])}
        old_discount = Decimal(old_item['discount_percentage'] or 0)
        new_discount = Decimal(new_item['discount_percentage'] or 0)
        if old_discount != new_discount:
            change['discount_percentage'] = {'from': old_discount, 'to': new_discount}
        if change:
            modified.append({'product_id': pid, 'product_name': new_item['product_name'], **change})

    return {'added': added, 'removed': removed, 'modified': modified}


def update_order(
    session,
    order_id: int,
    customer_name: str,
    items: List[Dict[str, Any]],
    customer_address: Optional[str] = None,
    discount: Optional[Dict[str, Any]] = None,
) -> Order:
    """
    Re-price and overwrite a Pending order. Never touches stock.

    The item diff is computed from a non-transactional read and is only
    used for the audit entry.

    Raises:
        NotFoundError: order or a product does not exist
        ConflictError: order is already paid, or it changed concurrently
        ValidationError / InsufficientStockError: as in create_order
    """
    order = get_order(session, order_id)
    if order.is_paid:
        raise ConflictError(f'Order {order_id} is paid and can no longer be edited')

    name = _validate_header(customer_name, items)
    discount_type, discount_value = parse_discount(discount)

    try:
        old_items = [item.to_dict() for item in order.items]
        lines = _price_items(session, items)
        changes = diff_order_items(old_items, lines)

        _fill_order(order, name, customer_address, lines, discount_type, discount_value)
        session.flush()

        log_activity(
            session, ActivityAction.UPDATE, 'order',
            f'Order #{order.id} - {order.customer_name} updated',
            data={'changes': changes, 'order': order.to_dict()}, entity_id=order.id
        )
        session.commit()
    except StaleDataError:
        session.rollback()
        raise ConflictError(f'Order {order_id} was modified concurrently, reload and retry')
    except Exception:
        session.rollback()
        raise

    return order


def delete_order(session, order_id: int, now: Optional[datetime] = None, ttl_days: Optional[int] = None) -> Dict[str, Any]:
    """
    Move an order into the recycle bin and remove the live record.

    Raises:
        NotFoundError: order does not exist
    """
    order = get_order(session, order_id)

    try:
        snapshot = order.to_dict()
        entry = recycle_order(session, order, now=now, ttl_days=ttl_days)
        session.delete(order)

        log_activity(
            session, ActivityAction.DELETE, 'order',
            f'Order #{order_id} - {snapshot["customer_name"]}',
            data=snapshot, entity_id=order_id
        )
        session.commit()
    except StaleDataError:
        session.rollback()
        raise ConflictError(f'Order {order_id} was modified concurrently, reload and retry')
    except Exception:
        session.rollback()
        raise

    logger.info(f"[ORDERS] Order {order_id} moved to recycle bin (entry {entry.id})")
    return {'id': order_id, 'recycle_bin_id': entry.id}


def delete_orders(session, order_ids: List[int], now: Optional[datetime] = None,
                  ttl_days: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Delete several orders independently; one failure does not undo the others.

    Returns:
        list of {'id', 'success', 'error'} in input order
    """
    results = []
    for order_id in order_ids:
        try:
            delete_order(session, order_id, now=now, ttl_days=ttl_days)
            results.append({'id': order_id, 'success': True, 'error': None})
        except (NotFoundError, ConflictError) as e:
            logger.warning(f"[ORDERS] Bulk delete skipped order {order_id}: {e.message}")
            results.append({'id': order_id, 'success': False, 'error': e.message})
    return results
