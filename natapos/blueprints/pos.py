"""POS blueprint - operator cart and counter checkout."""
from flask import Blueprint, g

from natapos.exceptions import ValidationError
from natapos.middleware import require_operator
from natapos.state import get_app_state
from natapos.utils.formatters import parse_amount
from natapos.utils.serialization import json_body, json_response

pos_bp = Blueprint('pos', __name__, url_prefix='/pos')


def _cart():
    return get_app_state().carts.get(g.staff_id)


def _cart_payload(cart):
    data = cart.to_dict()
    data.update(cart.totals())
    return data


def _cash_received(payload):
    raw = payload.get('cash_received')
    if raw is None or raw == '':
        return None
    try:
        return parse_amount(raw)
    except ValueError as e:
        raise ValidationError(f'cash_received: {e}')


@pos_bp.route('/cart', methods=['GET'])
@require_operator
def cart():
    return json_response({'cart': _cart_payload(_cart())})


@pos_bp.route('/cart/add', methods=['POST'])
@require_operator
def cart_add():
    """Body: {item: {id, name, price}, quantity, notes}"""
    payload = json_body()
    line = _cart().add(payload.get('item') or {}, quantity=payload.get('quantity', 1), notes=payload.get('notes', ''))
    return json_response({'status': 'success', 'line': line.to_dict(), 'cart': _cart_payload(_cart())})


@pos_bp.route('/cart/update', methods=['POST'])
@require_operator
def cart_update():
    """Body: {key, quantity}. Quantity 0 removes the line."""
    payload = json_body()
    _cart().update_quantity(payload.get('key'), payload.get('quantity'))
    return json_response({'status': 'success', 'cart': _cart_payload(_cart())})


@pos_bp.route('/cart/remove', methods=['POST'])
@require_operator
def cart_remove():
    payload = json_body()
    removed = _cart().remove(payload.get('key'))
    return json_response({'status': 'success', 'removed': removed, 'cart': _cart_payload(_cart())})


@pos_bp.route('/cart/clear', methods=['POST'])
@require_operator
def cart_clear():
    _cart().clear()
    return json_response({'status': 'success', 'cart': _cart_payload(_cart())})


@pos_bp.route('/checkout/preview', methods=['POST'])
@require_operator
def checkout_preview():
    payload = json_body()
    preview = get_app_state().checkout.preview(_cart(), payload.get('method', 'cash'), _cash_received(payload))
    return json_response({'preview': preview})


@pos_bp.route('/checkout/confirm', methods=['POST'])
@require_operator
def checkout_confirm():
    """
    Charge the cart and record the order as completed.

    The cart is emptied only once the order id is back from the database.
    """
    payload = json_body()
    result = get_app_state().checkout.confirm_payment(
        _cart(),
        method=payload.get('method', 'cash'),
        cash_received=_cash_received(payload),
        order_type=payload.get('type', 'dine-in'),
        table=payload.get('table'),
        customer=payload.get('customer'),
        staff_id=g.staff_id,
    )
    return json_response({'status': 'success', **result}, 201)
