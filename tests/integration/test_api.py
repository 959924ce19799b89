"""
Integration tests for the JSON HTTP surface.
"""

import pytest


def _create_order(client, product_id, quantity=1, **extra):
    body = {'customer_name': 'Ana', 'items': [{'product_id': product_id, 'quantity': quantity}], **extra}
    response = client.post('/orders', json=body)
    assert response.status_code == 201, response.get_json()
    return response.get_json()['data']


class TestProductRoutes:

    def test_create_and_list(self, client):
        response = client.post('/products', json={
            'brand_name': 'Nivea', 'product_name': 'Soft', 'volume_size': '200ml',
            'cost_of_production': '10', 'markup_percentage': '20', 'stock_quantity': 4,
        })

        assert response.status_code == 201
        product = response.get_json()['data']
        assert product['sales_price'] == '12.00'
        assert product['sorting_code'] == 'NIV-SOF-200ML'

        listed = client.get('/products').get_json()['data']
        assert [p['id'] for p in listed] == [product['id']]

    def test_missing_markup_is_400(self, client):
        response = client.post('/products', json={'name': 'Soap', 'cost_of_production': '1'})

        assert response.status_code == 400
        assert response.get_json() == {'status': 'error', 'message': 'markup required'}

    def test_update_and_delete(self, client, soap):
        soap_id = soap.id

        updated = client.put(f'/products/{soap_id}', json={'markup_amount': '5'})
        assert updated.get_json()['data']['sales_price'] == '25.00'

        assert client.delete(f'/products/{soap_id}').status_code == 200
        assert client.get(f'/products/{soap_id}').status_code == 404


class TestOrderRoutes:

    def test_create_pay_and_stock(self, client, shampoo):
        shampoo_id = shampoo.id
        order = _create_order(client, shampoo_id, quantity=3)
        assert order['payment_status'] == 'Pending'

        paid = client.put(f"/orders/{order['id']}", json={'action': 'mark_paid'})

        assert paid.status_code == 200
        assert paid.get_json()['data']['payment_status'] == 'Paid'
        assert client.get(f'/products/{shampoo_id}').get_json()['data']['stock_quantity'] == 7

    def test_double_mark_paid_is_409(self, client, shampoo):
        order = _create_order(client, shampoo.id)
        client.put(f"/orders/{order['id']}", json={'action': 'mark_paid'})

        again = client.put(f"/orders/{order['id']}", json={'action': 'mark_paid'})

        assert again.status_code == 409

    def test_edit_paid_order_is_409(self, client, shampoo):
        shampoo_id = shampoo.id
        order = _create_order(client, shampoo_id)
        client.put(f"/orders/{order['id']}", json={'action': 'mark_paid'})

        response = client.put(f"/orders/{order['id']}", json={
            'customer_name': 'Ana', 'items': [{'product_id': shampoo_id, 'quantity': 2}],
        })

        assert response.status_code == 409

    def test_insufficient_stock_payload(self, client, shampoo):
        response = client.post('/orders', json={
            'customer_name': 'Ana', 'items': [{'product_id': shampoo.id, 'quantity': 50}],
        })

        assert response.status_code == 409
        body = response.get_json()
        assert body['product_name'] == 'Shampoo'
        assert body['available'] == 10

    def test_worked_example_totals(self, client, shampoo, soap):
        response = client.post('/orders', json={
            'customer_name': 'Ana',
            'items': [
                {'product_id': shampoo.id, 'quantity': 2, 'discount_percentage': 10},
                {'product_id': soap.id, 'quantity': 1},
            ],
            'discount': {'type': 'percentage', 'value': 5},
        })

        order = response.get_json()['data']
        assert order['subtotal'] == '230.00'
        assert order['discount_amount'] == '11.50'
        assert order['total_sales_price'] == '218.50'

    def test_bulk_delete_and_restore(self, client, shampoo):
        shampoo_id = shampoo.id
        first = _create_order(client, shampoo_id)
        second = _create_order(client, shampoo_id)

        response = client.post('/orders/bulk-delete', json={'ids': [first['id'], 999, second['id']]})

        results = response.get_json()['data']['results']
        assert [r['success'] for r in results] == [True, False, True]
        assert client.get('/orders').get_json()['data'] == []

        entries = client.get('/recycle-bin').get_json()['data']
        assert {e['original_id'] for e in entries} == {str(first['id']), str(second['id'])}

        restored = client.post(f"/recycle-bin/{entries[0]['id']}/restore").get_json()['data']
        assert restored['restored_at'] is not None
        assert restored['id'] not in (first['id'], second['id'])

        purged = client.delete(f"/recycle-bin/{entries[1]['id']}")
        assert purged.status_code == 200
        assert client.get('/recycle-bin').get_json()['data'] == []

    def test_sweep_route_with_nothing_expired(self, client, shampoo):
        order = _create_order(client, shampoo.id)
        client.delete(f"/orders/{order['id']}")

        response = client.post('/recycle-bin/sweep')

        assert response.get_json()['data'] == {'deleted': 0}
        assert len(client.get('/recycle-bin').get_json()['data']) == 1

    def test_missing_order_is_404(self, client):
        assert client.get('/orders/12345').status_code == 404
        assert client.delete('/orders/12345').status_code == 404


class TestReadRoutes:

    def test_activity_log_filters(self, client, shampoo):
        order = _create_order(client, shampoo.id)
        client.put(f"/orders/{order['id']}", json={'action': 'mark_paid'})

        entries = client.get('/activity-log?entity_type=order').get_json()['data']
        assert [e['action'] for e in entries] == ['update', 'create']

        creates = client.get('/activity-log?action=create&limit=1').get_json()['data']
        assert len(creates) == 1

        assert client.get('/activity-log?action=nope').status_code == 400
        assert client.get('/activity-log?limit=abc').status_code == 400

    def test_dashboard_stats(self, client, shampoo, soap):
        shampoo_id, soap_id = shampoo.id, soap.id
        _create_order(client, shampoo_id, quantity=2)
        _create_order(client, soap_id, quantity=5)

        stats = client.get('/dashboard-stats').get_json()['data']

        assert len(stats['revenue_chart']) == 1
        assert stats['revenue_chart'][0]['revenue'] == '450.00'
        assert [p['name'] for p in stats['top_products']] == ['Soap', 'Shampoo']
        assert stats['top_products'][0]['total_sold'] == 5

    def test_metrics_endpoint(self, client, shampoo):
        order = _create_order(client, shampoo.id)
        client.put(f"/orders/{order['id']}", json={'action': 'mark_paid'})

        response = client.get('/metrics')

        assert response.status_code == 200
        assert b'ryme_orders_marked_paid_total' in response.data

    @pytest.mark.parametrize('path', ['/customers', '/orders/1/explode'])
    def test_unknown_paths_are_404(self, client, path):
        assert client.post(path).status_code in (404, 405)
