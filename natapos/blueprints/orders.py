"""Orders blueprint - table-service orders and status changes."""
from datetime import datetime

from flask import Blueprint, request, g, current_app

from natapos.database import get_session
from natapos.exceptions import ValidationError
from natapos.middleware import require_operator
from natapos.models import ACTIVE_STATUSES, TERMINAL_STATUSES
from natapos.services import order_service
from natapos.state import get_app_state
from natapos.utils.serialization import json_body, json_response

orders_bp = Blueprint('orders', __name__, url_prefix='/orders')

STATUS_GROUPS = {
    'active': [s.value for s in ACTIVE_STATUSES],
    'completed': [s.value for s in TERMINAL_STATUSES],
}


def _parse_statuses(raw):
    if not raw:
        return None
    if raw in STATUS_GROUPS:
        return STATUS_GROUPS[raw]
    return [s.strip() for s in raw.split(',') if s.strip()]


def _parse_since(raw):
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f'Invalid date: {raw}')


def _store():
    store = get_app_state().orders
    if not store.loaded or request.args.get('refresh') == '1':
        store.load()
    return store


@orders_bp.route('', methods=['GET'])
@require_operator
def list_orders():
    """
    Orders from the database, newest first.

    Query params: status (active, completed or a comma list), since (ISO
    datetime), limit (default ORDER_FETCH_LIMIT).
    """
    try:
        limit = int(request.args.get('limit', current_app.config.get('ORDER_FETCH_LIMIT', 100)))
    except ValueError:
        raise ValidationError('limit must be a number')
    try:
        orders = order_service.list_orders(
            get_session(),
            statuses=_parse_statuses(request.args.get('status')),
            since=_parse_since(request.args.get('since')),
            limit=limit,
        )
    except ValueError as e:
        raise ValidationError(str(e))
    return json_response({'orders': [o.to_dict() for o in orders]})


@orders_bp.route('/active', methods=['GET'])
@require_operator
def active_orders():
    return json_response({'orders': _store().active_orders()})


@orders_bp.route('/completed', methods=['GET'])
@require_operator
def completed_orders():
    return json_response({'orders': _store().completed_orders()})


@orders_bp.route('/<int:order_id>', methods=['GET'])
@require_operator
def get_order(order_id: int):
    return json_response({'order': order_service.get_order(get_session(), order_id).to_dict()})


@orders_bp.route('', methods=['POST'])
@require_operator
def create_order():
    """Create a table-service order; it starts in the kitchen's waiting lane."""
    payload = json_body()
    meta = {
        'table': payload.get('table'),
        'server': payload.get('server') or g.staff.full_name,
        'guest_count': payload.get('guest_count'),
        'platform': payload.get('platform'),
        'kitchen_notes': payload.get('kitchen_notes'),
        'customer': payload.get('customer'),
        'discount_label': payload.get('discount_label'),
    }
    order = get_app_state().orders.create_order(
        payload.get('items') or [],
        order_type=payload.get('type', 'dine-in'),
        meta=meta,
        payment=payload.get('payment'),
        discount_percent=payload.get('discount_percent', 0),
        staff_id=g.staff_id,
    )
    return json_response({'status': 'success', 'order': order}, 201)


@orders_bp.route('/<int:order_id>/status', methods=['PATCH', 'POST'])
@require_operator
def update_status(order_id: int):
    payload = json_body()
    new_status = payload.get('status')
    if not new_status:
        raise ValidationError('status is required')
    order = get_app_state().orders.update_status(order_id, new_status)
    return json_response({'status': 'success', 'order': order})
