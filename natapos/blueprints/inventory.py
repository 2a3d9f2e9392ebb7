"""Inventory blueprint - stock mirror, manual counts and stock movements."""
from datetime import date, datetime, time

from flask import Blueprint, g, request

from natapos.database import get_session
from natapos.exceptions import ValidationError
from natapos.middleware import require_operator
from natapos.services import inventory_service
from natapos.state import get_app_state
from natapos.utils.serialization import json_body, json_response

inventory_bp = Blueprint('inventory', __name__, url_prefix='/inventory')


def _store():
    store = get_app_state().inventory
    if not store.loaded or request.args.get('refresh') == '1':
        store.load()
    return store


@inventory_bp.route('', methods=['GET'])
@require_operator
def list_items():
    return json_response({'items': _store().items()})


@inventory_bp.route('/low-stock', methods=['GET'])
@require_operator
def low_stock():
    return json_response({'items': _store().low_stock()})


@inventory_bp.route('/<int:item_id>/stock', methods=['POST'])
@require_operator
def update_stock(item_id: int):
    """Body: {quantity}. Negative counts are stored as 0."""
    payload = json_body()
    if payload.get('quantity') is None:
        raise ValidationError('quantity is required')
    item = get_app_state().inventory.update_stock(item_id, payload['quantity'])
    return json_response({'status': 'success', 'item': item})


@inventory_bp.route('/adjustments', methods=['POST'])
@require_operator
def create_adjustment():
    """Body: {items: [{stock_item_id, physical_qty, reason?}], notes?}"""
    payload = json_body()
    adjustment = get_app_state().inventory.create_adjustment(
        payload.get('items'), notes=payload.get('notes', ''), created_by=g.staff_id
    )
    return json_response({'status': 'success', 'adjustment': adjustment}, 201)


def _day_bound(raw, end_of_day=False):
    if not raw:
        return None
    try:
        day = date.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f'Invalid date: {raw}. Use YYYY-MM-DD.')
    return datetime.combine(day, time.max if end_of_day else time.min)


@inventory_bp.route('/movements', methods=['GET'])
@require_operator
def movements():
    """?start=YYYY-MM-DD&end=YYYY-MM-DD&item_id=&direction=all|in|out"""
    item_id = request.args.get('item_id', type=int)
    result = inventory_service.list_stock_movements(
        get_session(),
        since=_day_bound(request.args.get('start')),
        until=_day_bound(request.args.get('end'), end_of_day=True),
        item_id=item_id,
        direction=request.args.get('direction', 'all'),
    )
    return json_response(result)
