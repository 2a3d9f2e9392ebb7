"""
Unit tests for the cart and the counter checkout.
"""

import pytest
from decimal import Decimal

from natapos.exceptions import ValidationError, InsufficientCashError, PersistenceError, NotFoundError
from natapos.models import Order, OrderStatus
from natapos.services import order_service
from natapos.state.cart import Cart, CartRegistry, make_line_key


NASI = {'id': 1, 'name': 'Nasi Goreng', 'price': 25000}
TEH = {'id': 2, 'name': 'Es Teh', 'price': 5000}


@pytest.fixture
def cart():
    cart = Cart(owner=1)
    cart.add(NASI, quantity=2)
    cart.add(TEH, quantity=2)
    return cart


class TestCart:

    def test_same_item_same_notes_merges(self):
        cart = Cart()
        cart.add(NASI)
        cart.add(NASI)

        assert len(cart.lines) == 1
        assert cart.lines[0].quantity == 2

    def test_notes_make_a_separate_line(self):
        cart = Cart()
        cart.add(NASI)
        cart.add(NASI, notes='no egg')

        assert len(cart.lines) == 2
        assert {line.key for line in cart.lines} == {make_line_key(1), make_line_key(1, 'no egg')}

    def test_reduce_to_zero_removes_line(self, cart):
        key = make_line_key(1)

        assert cart.update_quantity(key, 0) is None
        assert [line.name for line in cart.lines] == ['Es Teh']

    def test_readd_after_removal_starts_at_one(self, cart):
        key = make_line_key(1)
        cart.update_quantity(key, 0)

        line = cart.add(NASI)

        assert line.quantity == 1

    def test_update_unknown_line(self, cart):
        with pytest.raises(NotFoundError):
            cart.update_quantity('99|', 3)

    def test_add_rejects_zero_quantity(self):
        with pytest.raises(ValidationError):
            Cart().add(NASI, quantity=0)

    @pytest.mark.parametrize('item,quantity', [
        ({'id': 3, 'name': 'Es Jeruk', 'price': 'abc'}, 1),
        ({'id': 3, 'name': 'Es Jeruk', 'price': 'NaN'}, 1),
        ({'id': 3, 'name': 'Es Jeruk', 'price': 'Infinity'}, 1),
        ({'id': 3, 'price': 8000}, 1),
        ({'name': 'Es Jeruk', 'price': 8000}, 1),
        ('Es Jeruk', 1),
        (NASI, 'x'),
        (NASI, True),
    ])
    def test_add_rejects_malformed_input(self, cart, item, quantity):
        with pytest.raises(ValidationError):
            cart.add(item, quantity=quantity)

        assert [line.name for line in cart.lines] == ['Nasi Goreng', 'Es Teh']

    def test_update_rejects_bad_key_and_quantity(self, cart):
        key = make_line_key(1, '')

        with pytest.raises(NotFoundError):
            cart.update_quantity(['not', 'a', 'key'], 1)
        with pytest.raises(ValidationError):
            cart.update_quantity(key, 'many')

    def test_subtotal_and_clear(self, cart):
        assert cart.subtotal == Decimal('60000')
        assert cart.item_count == 4

        cart.clear()

        assert cart.is_empty
        assert cart.subtotal == Decimal('0')

    def test_registry_one_cart_per_operator(self):
        registry = CartRegistry()

        assert registry.get(1) is registry.get(1)
        assert registry.get(1) is not registry.get(2)


class TestCheckout:

    def test_totals(self, state, cart):
        totals = state.checkout.compute_totals(cart)

        assert totals['subtotal'] == Decimal('60000')
        assert totals['tax'] == Decimal('6000')
        assert totals['grand_total'] == Decimal('66000')

    def test_preview_change(self, state, cart):
        preview = state.checkout.preview(cart, 'cash', Decimal('70000'))

        assert preview['change'] == Decimal('4000')

    def test_cash_payment_creates_completed_order(self, state, session, cart):
        result = state.checkout.confirm_payment(cart, 'cash', Decimal('70000'), table='T2')

        assert result['change'] == Decimal('4000')
        assert result['transaction_id'].startswith('TX_')
        assert cart.is_empty

        order = order_service.get_order(session, result['order']['id'])
        assert order.status == OrderStatus.COMPLETED
        assert order.total == Decimal('66000')
        assert order.payment.method == 'cash'
        assert order.payment.change_amount == Decimal('4000')
        assert order.table_label == 'T2'

    def test_exact_cash(self, state, cart):
        result = state.checkout.confirm_payment(cart, 'cash', Decimal('66000'))

        assert result['change'] == Decimal('0')

    def test_short_cash_creates_nothing(self, state, session, cart):
        with pytest.raises(InsufficientCashError):
            state.checkout.confirm_payment(cart, 'cash', Decimal('65000'))

        assert session.query(Order).count() == 0
        assert len(cart.lines) == 2

    def test_qris_needs_no_amount(self, state, cart):
        result = state.checkout.confirm_payment(cart, 'qris')

        assert result['order']['payment']['method'] == 'qris'
        assert result['change'] is None

    def test_empty_cart_rejected(self, state):
        with pytest.raises(ValidationError):
            state.checkout.confirm_payment(Cart(), 'qris')

    def test_failed_write_keeps_cart(self, state, cart, monkeypatch):
        def broken(*args, **kwargs):
            raise PersistenceError('insert rejected')

        monkeypatch.setattr(order_service, 'create_order', broken)

        with pytest.raises(PersistenceError):
            state.checkout.confirm_payment(cart, 'cash', Decimal('70000'))

        assert len(cart.lines) == 2
        assert not state.checkout.is_processing(cart)

    def test_checkout_order_never_reaches_kitchen(self, state, cart):
        state.checkout.confirm_payment(cart, 'qris')

        assert state.kitchen.board()['counts'] == {'waiting': 0, 'cooking': 0, 'ready': 0}
