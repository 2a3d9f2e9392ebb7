"""Report service - sales figures over a date range."""
from datetime import datetime, date, time
from decimal import Decimal
from typing import Any, Dict
import logging

from sqlalchemy import func

from natapos.models import Order, OrderPayment, OrderStatus
from natapos.exceptions import ValidationError

logger = logging.getLogger(__name__)


def _day_bounds(start: date, end: date):
    start_dt = datetime.combine(start, time.min)
    end_dt = datetime.combine(end, time.max)
    return start_dt, end_dt


def sales_report(session, start: date, end: date) -> Dict[str, Any]:
    """
    Sales between two dates (inclusive), by order creation time.

    Returns:
        dict with order_count, revenue, average_order, revenue_by_method
        (method -> amount), refunded_count and refunded_total.
    """
    if start > end:
        raise ValidationError('Start date must be on or before end date')

    start_dt, end_dt = _day_bounds(start, end)
    in_range = (Order.created_at >= start_dt, Order.created_at <= end_dt)

    count, revenue = (
        session.query(func.count(Order.id), func.coalesce(func.sum(Order.total), 0))
        .filter(Order.status == OrderStatus.COMPLETED, *in_range)
        .one()
    )

    by_method_rows = (
        session.query(OrderPayment.method, func.coalesce(func.sum(Order.total), 0))
        .join(Order, OrderPayment.order_id == Order.id)
        .filter(Order.status == OrderStatus.COMPLETED, *in_range)
        .group_by(OrderPayment.method)
        .all()
    )

    refunded_count, refunded_total = (
        session.query(func.count(Order.id), func.coalesce(func.sum(Order.total), 0))
        .filter(Order.status == OrderStatus.REFUNDED, *in_range)
        .one()
    )

    revenue = Decimal(str(revenue or 0))
    count = int(count or 0)
    logger.debug(f"[REPORTS] Sales {start}..{end}: {count} orders, {revenue}")

    return {
        'start': start,
        'end': end,
        'order_count': count,
        'revenue': revenue,
        'average_order': (revenue / count).quantize(Decimal('1')) if count else Decimal('0'),
        'revenue_by_method': {method: Decimal(str(total)) for method, total in by_method_rows},
        'refunded_count': int(refunded_count or 0),
        'refunded_total': Decimal(str(refunded_total or 0)),
    }
