"""
Unit tests for command decoding and execution.
"""

import pytest

from ryme.commands import (
    BulkDeleteOrders, CreateOrder, CreateProduct, DeleteOrder, MarkOrderPaid, PurgeRecycleEntry,
    RestoreRecycleEntry, SweepRecycleBin, UpdateOrder, UpdateProduct, decode, encode, read_topic
)
from ryme.exceptions import NotFoundError, ValidationError


class TestDecode:

    @pytest.mark.parametrize('method,path,payload,expected', [
        ('POST', '/products', {'name': 'Soap'}, CreateProduct(payload={'name': 'Soap'})),
        ('PUT', '/products/4', {'markup_amount': 1}, UpdateProduct(product_id=4, payload={'markup_amount': 1})),
        ('POST', '/orders', {'customer_name': 'Ana'}, CreateOrder(payload={'customer_name': 'Ana'})),
        ('PUT', '/orders/9', {'action': 'mark_paid'}, MarkOrderPaid(order_id=9)),
        ('PUT', '/orders/9', {'customer_name': 'Ana'}, UpdateOrder(order_id=9, payload={'customer_name': 'Ana'})),
        ('DELETE', '/orders/9', None, DeleteOrder(order_id=9)),
        ('POST', '/orders/bulk-delete', {'ids': [1, '2']}, BulkDeleteOrders(order_ids=(1, 2))),
        ('POST', '/recycle-bin/3/restore', None, RestoreRecycleEntry(entry_id=3)),
        ('DELETE', '/recycle-bin/3', None, PurgeRecycleEntry(entry_id=3)),
        ('POST', '/recycle-bin/sweep', None, SweepRecycleBin()),
    ])
    def test_decode(self, method, path, payload, expected):
        assert decode(method, path, payload) == expected

    def test_temporary_ids_stay_strings(self):
        command = decode('DELETE', '/orders/offline-abc', None)
        assert command.order_id == 'offline-abc'

    @pytest.mark.parametrize('method,path', [
        ('GET', '/products'),
        ('PATCH', '/orders/1'),
        ('POST', '/customers'),
        ('POST', '/recycle-bin/1/explode'),
    ])
    def test_unknown_endpoint(self, method, path):
        with pytest.raises(ValidationError):
            decode(method, path, {})

    def test_encode_reverses_decode(self):
        command = MarkOrderPaid(order_id=5)
        assert decode(*encode(command)) == command

    def test_read_topics(self):
        assert read_topic('/orders/3') == 'orders'
        assert read_topic('/dashboard-stats') == 'dashboard'
        with pytest.raises(ValidationError):
            read_topic('/nope')


class TestCommandExecutor:

    def _executor(self, app):
        return app.extensions['executor']

    def test_results_are_json_safe(self, app, shampoo):
        result = self._executor(app)(CreateOrder(payload={
            'customer_name': 'Ana',
            'items': [{'product_id': shampoo.id, 'quantity': 1}],
        }))

        assert result['total_sales_price'] == '100.00'
        assert result['payment_status'] == 'Pending'

    def test_temporary_id_is_not_found(self, app):
        with pytest.raises(NotFoundError):
            self._executor(app)(MarkOrderPaid(order_id='offline-123'))

    def test_mutation_notifies_live_queries(self, app, shampoo):
        hub = app.extensions['live_queries']
        pushes = []
        unsubscribe = hub.subscribe('/products', pushes.append)
        try:
            self._executor(app)(UpdateProduct(product_id=shampoo.id, payload={'markup_amount': '10'}))
        finally:
            unsubscribe()

        assert len(pushes) == 2
        assert pushes[-1][0]['sales_price'] == '70.00'

    def test_bulk_delete_reports_temporary_ids(self, app, shampoo):
        executor = self._executor(app)
        order = executor(CreateOrder(payload={
            'customer_name': 'Ana', 'items': [{'product_id': shampoo.id, 'quantity': 1}],
        }))

        result = executor(BulkDeleteOrders(order_ids=(order['id'], 'offline-x')))

        assert [r['success'] for r in result['results']] == [True, False]

    def test_bulk_delete_results_follow_input_order(self, app, shampoo):
        executor = self._executor(app)
        order = executor(CreateOrder(payload={
            'customer_name': 'Ana', 'items': [{'product_id': shampoo.id, 'quantity': 1}],
        }))

        result = executor(BulkDeleteOrders(order_ids=('offline-x', order['id'], 999999)))

        assert [r['id'] for r in result['results']] == ['offline-x', order['id'], 999999]
        assert [r['success'] for r in result['results']] == [False, True, False]

    def test_read_missing_single_resource(self, app):
        assert self._executor(app).read('/orders/999') is None
        assert self._executor(app).read('/products/offline-1') is None
