"""Kitchen blueprint - lanes, drag-and-drop and the lane buttons."""
from flask import Blueprint, request

from natapos.exceptions import ValidationError
from natapos.middleware import require_operator
from natapos.state import get_app_state
from natapos.utils.serialization import json_body, json_response

kitchen_bp = Blueprint('kitchen', __name__, url_prefix='/kitchen')


def _board():
    state = get_app_state()
    if not state.orders.loaded or request.args.get('refresh') == '1':
        state.orders.load()
    return state.kitchen


@kitchen_bp.route('/board', methods=['GET'])
@require_operator
def board():
    """Polled every second by the kitchen screen; elapsed times are recomputed on each call."""
    return json_response(_board().board())


@kitchen_bp.route('/orders/<int:order_id>/drop', methods=['POST'])
@require_operator
def drop(order_id: int):
    payload = json_body()
    lane = payload.get('lane')
    if not lane:
        raise ValidationError('lane is required')
    order = get_app_state().kitchen.drop(order_id, lane)
    return json_response({'status': 'success', 'order': order})


@kitchen_bp.route('/orders/<int:order_id>/advance', methods=['POST'])
@require_operator
def advance(order_id: int):
    order = get_app_state().kitchen.advance(order_id)
    return json_response({'status': 'success', 'order': order})


@kitchen_bp.route('/batching', methods=['GET'])
@require_operator
def batching():
    return json_response({'items': _board().batching_summary()})
