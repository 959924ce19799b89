"""
Unit tests for order creation, editing and deletion.
"""

import json
import pytest
from decimal import Decimal

from ryme.exceptions import ValidationError, NotFoundError, ConflictError, InsufficientStockError
from ryme.models import ActivityLogEntry, Order, RecycleBinEntry
from ryme.services import order_service, product_service
from ryme.services.order_service import calculate_order_totals, diff_order_items, parse_discount


def _line(price, qty, cost='0'):
    return {'effective_price': Decimal(price), 'quantity': qty, 'cost_at_time': Decimal(cost)}


class TestOrderTotals:
    """Tests for pure total computation."""

    def test_worked_example(self):
        lines = [_line('90.00', 2), _line('50.00', 1)]
        totals = calculate_order_totals(lines, 'percentage', Decimal('5'))

        assert totals['subtotal'] == Decimal('230.00')
        assert totals['discount_amount'] == Decimal('11.50')
        assert totals['total_sales_price'] == Decimal('218.50')

    def test_fixed_discount_capped_at_subtotal(self):
        totals = calculate_order_totals([_line('10.00', 1)], 'fixed', Decimal('25'))

        assert totals['discount_amount'] == Decimal('10.00')
        assert totals['total_sales_price'] == Decimal('0.00')

    def test_profit_is_net_of_order_discount(self):
        totals = calculate_order_totals([_line('100.00', 1, cost='60.00')], 'fixed', Decimal('15'))

        assert totals['total_profit'] == Decimal('25.00')

    @pytest.mark.parametrize('discount', [
        {'type': 'bogus', 'value': 1},
        {'type': 'percentage', 'value': 101},
        {'type': 'fixed', 'value': -1},
    ])
    def test_invalid_discount(self, discount):
        with pytest.raises(ValidationError):
            parse_discount(discount)

    def test_none_discount_normalizes_value(self):
        assert parse_discount({'type': 'none', 'value': 30}) == ('none', Decimal('0'))
        assert parse_discount(None) == ('none', Decimal('0'))


class TestDiffOrderItems:
    """Tests for the audit diff."""

    def _item(self, product_id, qty, discount='0'):
        return {'product_id': product_id, 'product_name': f'P{product_id}', 'quantity': qty,
                'discount_percentage': discount}

    def test_added_removed_modified(self):
        old = [self._item(1, 2), self._item(2, 1), self._item(3, 1, '5')]
        new = [self._item(1, 3), self._item(3, 1, '10'), self._item(4, 1)]

        changes = diff_order_items(old, new)

        assert [i['product_id'] for i in changes['added']] == [4]
        assert [i['product_id'] for i in changes['removed']] == [2]
        modified = {m['product_id']: m for m in changes['modified']}
        assert modified[1]['quantity'] == {'from': 2, 'to': 3}
        assert modified[3]['discount_percentage'] == {'from': Decimal('5'), 'to': Decimal('10')}

    def test_no_changes(self):
        items = [self._item(1, 2)]
        assert diff_order_items(items, items) == {'added': [], 'removed': [], 'modified': []}


class TestCreateOrder:
    """Tests for create_order."""

    def test_create_snapshots_prices(self, session, shampoo, soap):
        order = order_service.create_order(
            session, 'Ana', [
                {'product_id': shampoo.id, 'quantity': 2, 'discount_percentage': 10},
                {'product_id': soap.id, 'quantity': 1},
            ],
            discount={'type': 'percentage', 'value': 5}
        )

        assert order.payment_status == 'Pending'
        assert order.subtotal == Decimal('230.00')
        assert order.discount_amount == Decimal('11.50')
        assert order.total_sales_price == Decimal('218.50')
        assert order.items[0].effective_price == Decimal('90.00')
        assert order.items[0].sales_price_at_time == Decimal('100.00')
        assert order.items[0].sorting_code == 'SHA'

    def test_later_price_change_keeps_order_snapshot(self, session, shampoo):
        order = order_service.create_order(session, 'Ana', [{'product_id': shampoo.id, 'quantity': 2}])
        order_id = order.id
        snapshot_fields = ('sales_price_at_time', 'cost_at_time', 'profit_at_time', 'line_total')
        before_items = [{f: getattr(i, f) for f in snapshot_fields} for i in order.items]
        before_totals = (order.subtotal, order.total_sales_price, order.total_profit)

        product_service.update_product(session, shampoo.id, {
            'cost_of_production': '80.00', 'markup_amount': '70.00'
        })
        session.expire_all()

        order = order_service.get_order(session, order_id)
        assert shampoo.sales_price == Decimal('150.00')
        assert [{f: getattr(i, f) for f in snapshot_fields} for i in order.items] == before_items
        assert (order.subtotal, order.total_sales_price, order.total_profit) == before_totals
        assert order.items[0].sales_price_at_time == Decimal('100.00')
        assert order.items[0].cost_at_time == Decimal('60.00')

    def test_create_does_not_touch_stock(self, session, shampoo):
        order_service.create_order(session, 'Ana', [{'product_id': shampoo.id, 'quantity': 3}])

        session.refresh(shampoo)
        assert shampoo.stock_quantity == 10

    def test_create_logs_activity(self, session, shampoo):
        order = order_service.create_order(session, 'Ana', [{'product_id': shampoo.id, 'quantity': 1}])

        entries = session.query(ActivityLogEntry).filter_by(entity_type='order', action='create').all()
        assert len(entries) == 1
        assert entries[0].entity_id == str(order.id)

    @pytest.mark.parametrize('customer,items', [
        ('', [{'product_id': 1, 'quantity': 1}]),
        ('Ana', []),
        ('Ana', None),
    ])
    def test_requires_customer_and_items(self, session, customer, items):
        with pytest.raises(ValidationError):
            order_service.create_order(session, customer, items)
        assert session.query(Order).count() == 0

    def test_invalid_quantity(self, session, shampoo):
        with pytest.raises(ValidationError):
            order_service.create_order(session, 'Ana', [{'product_id': shampoo.id, 'quantity': 0}])

    def test_missing_product(self, session):
        with pytest.raises(NotFoundError):
            order_service.create_order(session, 'Ana', [{'product_id': 9999, 'quantity': 1}])

    def test_quantity_above_stock(self, session, shampoo):
        with pytest.raises(InsufficientStockError) as exc_info:
            order_service.create_order(session, 'Ana', [{'product_id': shampoo.id, 'quantity': 11}])

        assert exc_info.value.product_name == 'Shampoo'
        assert exc_info.value.available == 10
        assert session.query(Order).count() == 0


class TestUpdateOrder:
    """Tests for update_order."""

    def test_update_overwrites_items_and_logs_diff(self, session, shampoo, soap):
        order = order_service.create_order(session, 'Ana', [{'product_id': shampoo.id, 'quantity': 2}])

        updated = order_service.update_order(
            session, order.id, 'Ana B', [{'product_id': soap.id, 'quantity': 4}]
        )

        assert [i.product_id for i in updated.items] == [soap.id]
        assert updated.customer_name == 'Ana B'
        assert updated.total_sales_price == Decimal('200.00')

        entry = session.query(ActivityLogEntry).filter_by(action='update', entity_type='order').one()
        data = json.loads(entry.data)
        assert [i['product_id'] for i in data['changes']['added']] == [soap.id]
        assert [i['product_id'] for i in data['changes']['removed']] == [shampoo.id]

    def test_update_never_touches_stock(self, session, shampoo):
        order = order_service.create_order(session, 'Ana', [{'product_id': shampoo.id, 'quantity': 2}])
        order_service.update_order(session, order.id, 'Ana', [{'product_id': shampoo.id, 'quantity': 5}])

        session.refresh(shampoo)
        assert shampoo.stock_quantity == 10

    def test_update_paid_order_is_rejected(self, session, shampoo):
        """Editing a paid order would bypass the stock already deducted."""
        order = order_service.create_order(session, 'Ana', [{'product_id': shampoo.id, 'quantity': 2}])
        order_service.mark_order_paid(session, order.id)

        with pytest.raises(ConflictError):
            order_service.update_order(session, order.id, 'Ana', [{'product_id': shampoo.id, 'quantity': 1}])

        session.refresh(order)
        assert order.items[0].quantity == 2

    def test_update_missing_order(self, session, shampoo):
        with pytest.raises(NotFoundError):
            order_service.update_order(session, 424242, 'Ana', [{'product_id': shampoo.id, 'quantity': 1}])


class TestDeleteOrder:
    """Tests for delete_order and delete_orders."""

    def test_delete_moves_to_recycle_bin(self, session, shampoo):
        order = order_service.create_order(session, 'Ana', [{'product_id': shampoo.id, 'quantity': 1}])
        order_id = order.id

        result = order_service.delete_order(session, order_id)

        assert session.get(Order, order_id) is None
        entry = session.get(RecycleBinEntry, result['recycle_bin_id'])
        assert entry.original_id == str(order_id)
        assert entry.document['customer_name'] == 'Ana'

    def test_delete_missing(self, session):
        with pytest.raises(NotFoundError):
            order_service.delete_order(session, 31337)

    def test_bulk_delete_is_independent(self, session, shampoo):
        first = order_service.create_order(session, 'Ana', [{'product_id': shampoo.id, 'quantity': 1}]).id
        second = order_service.create_order(session, 'Bea', [{'product_id': shampoo.id, 'quantity': 1}]).id

        results = order_service.delete_orders(session, [first, 999999, second])

        assert [r['success'] for r in results] == [True, False, True]
        assert 'not found' in results[1]['error']
        assert session.query(Order).count() == 0
        assert session.query(RecycleBinEntry).count() == 2
