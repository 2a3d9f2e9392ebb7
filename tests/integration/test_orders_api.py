"""
Integration tests for the order and kitchen endpoints.
"""

from decimal import Decimal

from natapos.models import Order, OrderSequence


ITEMS = [
    {'product_id': 1, 'name': 'Nasi Goreng', 'price': 25000, 'quantity': 2},
    {'product_id': 2, 'name': 'Es Teh', 'price': 5000, 'quantity': 2},
]


def _create(client, **extra):
    payload = {'items': ITEMS, 'type': 'dine-in', 'table': 'T7'}
    payload.update(extra)
    response = client.post('/orders', json=payload)
    assert response.status_code == 201
    return response.get_json()['order']


class TestAuthentication:

    def test_requires_operator(self, client):
        response = client.get('/orders/active')

        assert response.status_code == 401
        assert response.get_json()['status'] == 'error'

    def test_inactive_operator_rejected(self, client, session, staff):
        staff.active = False
        session.commit()
        with client.session_transaction() as sess:
            sess['staff_id'] = staff.id

        assert client.get('/orders/active').status_code == 401


class TestOrders:

    def test_create_table_order(self, authenticated_client, staff):
        order = _create(authenticated_client)

        assert order['status'] == 'waiting'
        assert order['table'] == 'T7'
        assert order['server'] == staff.full_name
        assert Decimal(order['subtotal']) == Decimal('60000.00')
        assert Decimal(order['tax']) == Decimal('4800.00')
        assert Decimal(order['total']) == Decimal('64800.00')
        assert order['staff_id'] == staff.id

    def test_empty_order_rejected(self, authenticated_client):
        response = authenticated_client.post('/orders', json={'items': []})

        assert response.status_code == 400
        assert 'at least one item' in response.get_json()['message']

    def test_malformed_items_rejected(self, authenticated_client, session):
        for items in (
            [{'name': 'Nasi Goreng', 'price': 'abc', 'quantity': 1}],
            [{'name': 'Nasi Goreng', 'price': 25000, 'quantity': 'x'}],
            [{'name': 'Nasi Goreng', 'price': 'NaN', 'quantity': 1}],
            [{'price': 25000, 'quantity': 1}],
            ['Nasi Goreng'],
            'Nasi Goreng',
        ):
            response = authenticated_client.post('/orders', json={'items': items})
            assert response.status_code == 400, items

        response = authenticated_client.post('/orders', json={
            'items': ITEMS, 'payment': {'method': 'cash', 'amount_received': 'Infinity'},
        })
        assert response.status_code == 400
        assert session.query(Order).count() == 0
        assert session.query(OrderSequence).count() == 0

    def test_non_object_body_rejected(self, authenticated_client):
        response = authenticated_client.post('/orders', json=['Nasi Goreng'])

        assert response.status_code == 400
        assert response.get_json()['status'] == 'error'

    def test_status_flow(self, authenticated_client):
        order = _create(authenticated_client)

        for status in ('cooking', 'ready', 'completed'):
            response = authenticated_client.patch(f"/orders/{order['id']}/status", json={'status': status})
            assert response.status_code == 200
            assert response.get_json()['order']['status'] == status

        completed = authenticated_client.get('/orders/completed').get_json()['orders']
        assert [o['id'] for o in completed] == [order['id']]

    def test_invalid_transition_is_409(self, authenticated_client):
        order = _create(authenticated_client)

        response = authenticated_client.patch(f"/orders/{order['id']}/status", json={'status': 'completed'})

        assert response.status_code == 409
        assert response.get_json()['from'] == 'waiting'
        assert response.get_json()['to'] == 'completed'

    def test_get_and_missing(self, authenticated_client):
        order = _create(authenticated_client)

        assert authenticated_client.get(f"/orders/{order['id']}").get_json()['order']['order_number'] == order['order_number']
        assert authenticated_client.get('/orders/9999').status_code == 404

    def test_list_filters(self, authenticated_client):
        first = _create(authenticated_client)
        second = _create(authenticated_client)
        authenticated_client.patch(f"/orders/{first['id']}/status", json={'status': 'cancelled'})

        active = authenticated_client.get('/orders?status=active').get_json()['orders']
        limited = authenticated_client.get('/orders?limit=1').get_json()['orders']

        assert [o['id'] for o in active] == [second['id']]
        assert [o['id'] for o in limited] == [second['id']]

    def test_list_bad_status(self, authenticated_client):
        assert authenticated_client.get('/orders?status=lost').status_code == 400


class TestKitchenEndpoints:

    def test_board_drop_and_advance(self, authenticated_client):
        order = _create(authenticated_client)

        board = authenticated_client.get('/kitchen/board').get_json()
        assert board['counts'] == {'waiting': 1, 'cooking': 0, 'ready': 0}
        card = board['lanes']['waiting'][0]
        assert card['elapsed'] == '00:00'
        assert card['action']['target'] == 'cooking'

        dropped = authenticated_client.post(f"/kitchen/orders/{order['id']}/drop", json={'lane': 'cooking'})
        assert dropped.get_json()['order']['status'] == 'cooking'

        advanced = authenticated_client.post(f"/kitchen/orders/{order['id']}/advance")
        assert advanced.get_json()['order']['status'] == 'ready'

        board = authenticated_client.get('/kitchen/board').get_json()
        assert board['lanes']['ready'][0]['elapsed'] == 'Done'

    def test_drop_requires_lane(self, authenticated_client):
        order = _create(authenticated_client)

        assert authenticated_client.post(f"/kitchen/orders/{order['id']}/drop", json={}).status_code == 400

    def test_batching(self, authenticated_client):
        _create(authenticated_client)
        _create(authenticated_client)

        items = authenticated_client.get('/kitchen/batching').get_json()['items']

        assert items == [{'name': 'Nasi Goreng', 'quantity': 4}, {'name': 'Es Teh', 'quantity': 4}]
