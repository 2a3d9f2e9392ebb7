"""
Integration tests for health, metrics, reports, inventory and notifications.
"""

from decimal import Decimal

from natapos.models import StockItem


class TestHealth:

    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json()['database'] == 'connected'

    def test_cache_health_degrades(self, client):
        response = client.get('/health/cache')

        assert response.status_code == 200
        assert response.get_json()['cache'] == 'unavailable'

    def test_metrics_exposes_pos_counters(self, client):
        response = client.get('/metrics')

        assert response.status_code == 200
        assert b'pos_orders_created_total' in response.data

    def test_unknown_route_is_json(self, client):
        response = client.get('/no-such-page')

        assert response.status_code == 404
        assert response.get_json()['status'] == 'error'


class TestReports:

    def test_sales_today(self, authenticated_client):
        authenticated_client.post('/pos/cart/add', json={'item': {'id': 1, 'name': 'Mie Ayam', 'price': 20000}})
        authenticated_client.post('/pos/checkout/confirm', json={'method': 'qris'})

        report = authenticated_client.get('/reports/sales').get_json()['report']

        assert report['order_count'] == 1
        assert Decimal(report['revenue']) == Decimal('22000')
        assert Decimal(report['revenue_by_method']['qris']) == Decimal('22000')

    def test_bad_date(self, authenticated_client):
        assert authenticated_client.get('/reports/sales?start=18-10-2026').status_code == 400


class TestInventory:

    def test_list_and_update(self, authenticated_client, session):
        item = StockItem(name='Minyak Goreng', sku='MYK-01', unit='l', current_stock=Decimal('10'), min_stock=Decimal('3'))
        session.add(item)
        session.commit()

        assert authenticated_client.get('/inventory/low-stock').get_json()['items'] == []

        response = authenticated_client.post(f'/inventory/{item.id}/stock', json={'quantity': 2})
        assert response.status_code == 200
        assert Decimal(response.get_json()['item']['current_stock']) == Decimal('2')

        low = authenticated_client.get('/inventory/low-stock').get_json()['items']
        assert [i['name'] for i in low] == ['Minyak Goreng']

    def test_quantity_required(self, authenticated_client):
        assert authenticated_client.post('/inventory/1/stock', json={}).status_code == 400

    def test_stock_count_and_movements(self, authenticated_client, session, staff):
        oil = StockItem(name='Minyak Goreng', sku='MYK-01', unit='l', current_stock=Decimal('10'), min_stock=Decimal('3'))
        session.add(oil)
        session.commit()

        response = authenticated_client.post('/inventory/adjustments', json={
            'notes': 'Closing count',
            'items': [{'stock_item_id': oil.id, 'physical_qty': '7.5', 'reason': 'leak'}],
        })
        assert response.status_code == 201
        adjustment = response.get_json()['adjustment']
        assert adjustment['created_by'] == staff.id
        assert Decimal(adjustment['items'][0]['difference']) == Decimal('-2.5')

        movements = authenticated_client.get('/inventory/movements?direction=out').get_json()
        assert [m['reason'] for m in movements['movements']] == ['leak']
        assert Decimal(movements['total_out']) == Decimal('2.5')
        items = authenticated_client.get('/inventory').get_json()['items']
        assert Decimal(items[0]['current_stock']) == Decimal('7.5')

    def test_stock_count_rejects_bad_input(self, authenticated_client):
        assert authenticated_client.post('/inventory/adjustments', json={'items': []}).status_code == 400
        assert authenticated_client.post('/inventory/adjustments', json=[1, 2]).status_code == 400
        assert authenticated_client.get('/inventory/movements?start=yesterday').status_code == 400
        assert authenticated_client.post('/inventory/1/stock', json={'quantity': 'Infinity'}).status_code == 400


class TestNotifications:

    def test_failed_transition_is_reported(self, authenticated_client):
        order = authenticated_client.post('/orders', json={
            'items': [{'name': 'Sate Ayam', 'price': 30000, 'quantity': 1}],
        }).get_json()['order']
        authenticated_client.patch(f"/orders/{order['id']}/status", json={'status': 'completed'})

        errors = authenticated_client.get('/notifications?level=error').get_json()['notifications']
        assert len(errors) == 1

        dismissed = authenticated_client.post(f"/notifications/{errors[0]['id']}/dismiss")
        assert dismissed.get_json() == {'dismissed': True}
        assert authenticated_client.get('/notifications?level=error').get_json()['notifications'] == []

    def test_dismiss_unknown(self, authenticated_client):
        assert authenticated_client.post('/notifications/999/dismiss').status_code == 404
