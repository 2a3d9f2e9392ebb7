"""
Kitchen service - derived kitchen-board values.

Everything here is computed from order snapshots and a clock reading;
nothing is stored.
"""
from collections import OrderedDict
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from natapos.models import OrderStatus
from natapos.utils.formatters import format_duration

LANES = (OrderStatus.WAITING, OrderStatus.COOKING, OrderStatus.READY)

URGENCY_NORMAL = 'normal'
URGENCY_WARNING = 'warning'
URGENCY_CRITICAL = 'critical'

# Lane button: label and the status it moves the order to
LANE_ACTIONS = {
    OrderStatus.WAITING: ('Start Cooking', OrderStatus.COOKING),
    OrderStatus.COOKING: ('Mark Ready', OrderStatus.READY),
    OrderStatus.READY: ('Recall', OrderStatus.WAITING),
}


def _thresholds():
    try:
        from flask import current_app
        return (
            int(current_app.config.get('KITCHEN_WARNING_MINUTES', 5)),
            int(current_app.config.get('KITCHEN_CRITICAL_MINUTES', 10)),
        )
    except RuntimeError:
        return 5, 10


def _as_datetime(value) -> datetime:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


def elapsed_ms(created_at, now: Optional[datetime] = None) -> int:
    """Milliseconds since creation, never negative (clock skew between terminals)."""
    now = now or datetime.now()
    delta = now - _as_datetime(created_at)
    return max(0, int(delta.total_seconds() * 1000))


def classify_urgency(elapsed: int, warning_minutes: Optional[int] = None,
                     critical_minutes: Optional[int] = None) -> str:
    """
    Urgency tier from whole elapsed minutes.

    <= 5 min normal, 6-10 min warning, > 10 min critical (defaults).
    """
    warning_default, critical_default = _thresholds()
    warning = warning_minutes if warning_minutes is not None else warning_default
    critical = critical_minutes if critical_minutes is not None else critical_default

    minutes = elapsed // 60000
    if minutes > critical:
        return URGENCY_CRITICAL
    if minutes > warning:
        return URGENCY_WARNING
    return URGENCY_NORMAL


def lane_action(status) -> Optional[Dict[str, str]]:
    action = LANE_ACTIONS.get(OrderStatus(status))
    if action is None:
        return None
    label, target = action
    return {'label': label, 'target': target.value}


def build_card(order: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    """Kitchen card for one order snapshot."""
    status = OrderStatus(order['status'])
    elapsed = elapsed_ms(order['created_at'], now)
    urgency = classify_urgency(elapsed)

    return {
        'id': order['id'],
        'order_number': order['order_number'],
        'type': order['type'],
        'table': order.get('table'),
        'platform': order.get('platform'),
        'customer': (order.get('customer') or {}).get('name'),
        'kitchen_notes': order.get('kitchen_notes'),
        'items': [
            {'name': item['name'], 'quantity': item['quantity'], 'notes': item.get('notes')}
            for item in order.get('items', [])
        ],
        'status': status.value,
        'elapsed_ms': elapsed,
        'elapsed': 'Done' if status == OrderStatus.READY else format_duration(elapsed),
        'urgency': urgency,
        # Only the cooking lane raises the alert styling
        'alert': status == OrderStatus.COOKING and urgency != URGENCY_NORMAL,
        'action': lane_action(status),
    }


def batching_summary(orders: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Quantity per menu item across waiting and cooking orders, largest first.

    Lets the line cook batch identical dishes.
    """
    totals: "OrderedDict[str, int]" = OrderedDict()
    for order in orders:
        if order['status'] not in (OrderStatus.WAITING.value, OrderStatus.COOKING.value):
            continue
        for item in order.get('items', []):
            totals[item['name']] = totals.get(item['name'], 0) + int(item['quantity'])

    return [
        {'name': name, 'quantity': qty}
        for name, qty in sorted(totals.items(), key=lambda kv: kv[1], reverse=True)
    ]
