"""
Integration tests for the counter checkout and the shift endpoints.
"""

from decimal import Decimal

from natapos.models import Order


NASI = {'id': 1, 'name': 'Nasi Goreng', 'price': 25000}
TEH = {'id': 2, 'name': 'Es Teh', 'price': 5000}


def _fill_cart(client):
    client.post('/pos/cart/add', json={'item': NASI, 'quantity': 2})
    response = client.post('/pos/cart/add', json={'item': TEH, 'quantity': 2})
    assert response.status_code == 200
    return response.get_json()['cart']


class TestCart:

    def test_malformed_lines_rejected(self, authenticated_client):
        bad_requests = (
            {'item': {'id': 1, 'name': 'Nasi Goreng', 'price': 'abc'}},
            {'item': {'id': 1, 'name': 'Nasi Goreng', 'price': 'NaN'}},
            {'item': {'id': 1, 'price': 25000}},
            {'item': NASI, 'quantity': 'x'},
            {'item': 'Nasi Goreng'},
        )
        for payload in bad_requests:
            assert authenticated_client.post('/pos/cart/add', json=payload).status_code == 400, payload

        assert authenticated_client.get('/pos/cart').get_json()['cart']['lines'] == []

    def test_add_update_remove(self, authenticated_client):
        cart = _fill_cart(authenticated_client)
        assert Decimal(cart['subtotal']) == Decimal('60000')
        assert Decimal(cart['tax']) == Decimal('6000')
        assert Decimal(cart['grand_total']) == Decimal('66000')

        key = cart['lines'][0]['key']
        cart = authenticated_client.post('/pos/cart/update', json={'key': key, 'quantity': 0}).get_json()['cart']
        assert [line['name'] for line in cart['lines']] == ['Es Teh']

        cart = authenticated_client.post('/pos/cart/clear').get_json()['cart']
        assert cart['lines'] == []

    def test_notes_split_lines(self, authenticated_client):
        authenticated_client.post('/pos/cart/add', json={'item': NASI})
        cart = authenticated_client.post('/pos/cart/add', json={'item': NASI, 'notes': 'no egg'}).get_json()['cart']

        assert len(cart['lines']) == 2

    def test_carts_are_per_operator(self, authenticated_client, other_staff, app):
        _fill_cart(authenticated_client)
        other = app.test_client()
        with other.session_transaction() as sess:
            sess['staff_id'] = other_staff.id

        assert other.get('/pos/cart').get_json()['cart']['lines'] == []


class TestCheckout:

    def test_preview(self, authenticated_client):
        _fill_cart(authenticated_client)

        preview = authenticated_client.post('/pos/checkout/preview', json={'method': 'cash', 'cash_received': '70.000'})

        assert Decimal(preview.get_json()['preview']['change']) == Decimal('4000')

    def test_cash_checkout(self, authenticated_client, session):
        _fill_cart(authenticated_client)

        response = authenticated_client.post('/pos/checkout/confirm', json={
            'method': 'cash', 'cash_received': 70000, 'type': 'takeaway',
            'customer': {'name': 'Andi Wijaya'},
        })

        assert response.status_code == 201
        body = response.get_json()
        assert Decimal(body['grand_total']) == Decimal('66000')
        assert Decimal(body['change']) == Decimal('4000')
        assert body['order']['status'] == 'completed'
        assert body['order']['customer']['initials'] == 'AW'
        assert authenticated_client.get('/pos/cart').get_json()['cart']['lines'] == []

    def test_short_cash(self, authenticated_client, session):
        _fill_cart(authenticated_client)

        response = authenticated_client.post('/pos/checkout/confirm', json={'method': 'cash', 'cash_received': 60000})

        assert response.status_code == 400
        assert Decimal(response.get_json()['required']) == Decimal('66000')
        assert session.query(Order).count() == 0
        assert len(authenticated_client.get('/pos/cart').get_json()['cart']['lines']) == 2

    def test_empty_cart(self, authenticated_client):
        response = authenticated_client.post('/pos/checkout/confirm', json={'method': 'qris'})

        assert response.status_code == 400

    def test_non_finite_cash_rejected(self, authenticated_client, session):
        _fill_cart(authenticated_client)

        for raw in ('NaN', 'Infinity', float('inf')):
            preview = authenticated_client.post('/pos/checkout/preview', json={'method': 'cash', 'cash_received': raw})
            confirm = authenticated_client.post('/pos/checkout/confirm', json={'method': 'cash', 'cash_received': raw})
            assert preview.status_code == 400
            assert confirm.status_code == 400

        assert session.query(Order).count() == 0


class TestShifts:

    def test_no_active_shift(self, authenticated_client):
        assert authenticated_client.get('/shifts/active').get_json() == {'shift': None}

    def test_open_requires_positive_float(self, authenticated_client):
        response = authenticated_client.post('/shifts/open', json={'start_cash': 0})

        assert response.status_code == 400

    def test_cash_log_without_shift(self, authenticated_client):
        response = authenticated_client.post('/shifts/cash-logs', json={'direction': 'in', 'amount': 1000})

        assert response.status_code == 409

    def test_full_shift(self, authenticated_client):
        client = authenticated_client
        opened = client.post('/shifts/open', json={'start_cash': '200.000'})
        assert opened.status_code == 201
        assert Decimal(opened.get_json()['shift']['start_cash']) == Decimal('200000.00')

        # A table-service order of 78.732 paid in cash
        order = client.post('/orders', json={
            'items': [{'name': 'Ayam Bakar', 'price': 27000, 'quantity': 3}],
            'discount_percent': '0.10',
            'payment': {'method': 'cash'},
        }).get_json()['order']
        assert Decimal(order['total']) == Decimal('78732.00')
        for status in ('cooking', 'ready', 'completed'):
            client.patch(f"/orders/{order['id']}/status", json={'status': status})

        assert client.post('/shifts/cash-logs', json={'direction': 'in', 'amount': 50000}).status_code == 201
        assert client.post('/shifts/cash-logs', json={'direction': 'out', 'amount': 20000,
                                                      'description': 'gas refill'}).status_code == 201
        assert len(client.get('/shifts/cash-logs').get_json()['entries']) == 2

        summary = client.get('/shifts/summary').get_json()['summary']
        assert Decimal(summary['expected_cash']) == Decimal('308732.00')
        assert summary['order_count'] == 1

        closed = client.post('/shifts/close', json={'actual_cash': 300000, 'notes': 'short'}).get_json()
        assert Decimal(closed['expected']) == Decimal('308732.00')
        assert Decimal(closed['difference']) == Decimal('-8732.00')
        assert closed['shift']['status'] == 'closed'

        assert client.get('/shifts/active').get_json() == {'shift': None}
        history = client.get('/shifts/history?filter=discrepancy').get_json()
        assert history['discrepancy_count'] == 1
        assert Decimal(history['total_variance']) == Decimal('-8732.00')

    def test_bad_amount(self, authenticated_client):
        response = authenticated_client.post('/shifts/open', json={'start_cash': 'lots'})

        assert response.status_code == 400

    def test_non_finite_amounts_rejected(self, authenticated_client):
        client = authenticated_client
        assert client.post('/shifts/open', json={'start_cash': 'Infinity'}).status_code == 400
        assert client.post('/shifts/open', json={'start_cash': float('nan')}).status_code == 400
        assert client.get('/shifts/active').get_json() == {'shift': None}

        assert client.post('/shifts/open', json={'start_cash': 100000}).status_code == 201
        assert client.post('/shifts/cash-logs', json={'direction': 'in', 'amount': 'NaN'}).status_code == 400
        assert client.post('/shifts/close', json={'actual_cash': '-Infinity'}).status_code == 400
        assert client.get('/shifts/cash-logs').get_json()['entries'] == []
        assert client.get('/shifts/active').get_json()['shift']['status'] == 'open'
