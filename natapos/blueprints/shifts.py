"""Shifts blueprint - open/close, cash movements, summary and history."""
from flask import Blueprint, request, g

from natapos.exceptions import ValidationError
from natapos.middleware import require_operator
from natapos.state import get_app_state
from natapos.utils.formatters import parse_amount
from natapos.utils.serialization import json_body, json_response

shifts_bp = Blueprint('shifts', __name__, url_prefix='/shifts')


def _amount(payload, field):
    try:
        return parse_amount(payload.get(field))
    except ValueError as e:
        raise ValidationError(f'{field}: {e}')


@shifts_bp.route('/active', methods=['GET'])
@require_operator
def active():
    """The operator's open shift, or null when a shift must be opened first."""
    shift = get_app_state().shifts.fetch_active_shift(g.staff_id)
    return json_response({'shift': shift})


@shifts_bp.route('/open', methods=['POST'])
@require_operator
def open_shift():
    payload = json_body()
    shift = get_app_state().shifts.open_shift(g.staff_id, _amount(payload, 'start_cash'))
    return json_response({'status': 'success', 'shift': shift}, 201)


@shifts_bp.route('/close', methods=['POST'])
@require_operator
def close_shift():
    """Returns expected/actual/difference once; they are shown and then gone."""
    payload = json_body()
    result = get_app_state().shifts.close_shift(
        g.staff_id, _amount(payload, 'actual_cash'), notes=payload.get('notes', '')
    )
    return json_response({'status': 'success', **result})


@shifts_bp.route('/cash-logs', methods=['GET'])
@require_operator
def list_cash_logs():
    state = get_app_state()
    shift = state.shifts.require_active_shift(g.staff_id)
    return json_response({'shift_id': shift['id'], 'entries': state.ledger.list_entries(shift['id'])})


@shifts_bp.route('/cash-logs', methods=['POST'])
@require_operator
def add_cash_log():
    payload = json_body()
    state = get_app_state()
    shift = state.shifts.require_active_shift(g.staff_id)
    entry = state.shifts.add_cash_log(
        shift['id'],
        payload.get('direction'),
        _amount(payload, 'amount'),
        payload.get('description', ''),
        created_by=g.staff_id,
    )
    return json_response({'status': 'success', 'entry': entry}, 201)


@shifts_bp.route('/summary', methods=['GET'])
@require_operator
def summary():
    return json_response({'summary': get_app_state().shifts.get_summary(g.staff_id)})


@shifts_bp.route('/history', methods=['GET'])
@require_operator
def history():
    """?filter=all|discrepancy|ok&limit=100"""
    try:
        limit = int(request.args.get('limit', 100))
    except ValueError:
        raise ValidationError('limit must be a number')
    result = get_app_state().shifts.list_history(request.args.get('filter', 'all'), limit)
    return json_response(result)
