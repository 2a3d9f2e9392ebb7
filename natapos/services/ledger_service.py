"""Ledger service - cash drawer movements and revenue aggregation."""
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
import logging

from sqlalchemy import func, case
from sqlalchemy.exc import SQLAlchemyError

from natapos.models import CashLog, CashDirection, Shift, Order, OrderPayment, OrderStatus, PaymentMethod
from natapos.exceptions import (
    PosError, ValidationError, NotFoundError, NoActiveShiftError, PersistenceError
)
from natapos.services.pricing import to_decimal
from natapos.services.realtime_service import publish_change, INSERT
from natapos.services.cache_service import invalidate_summaries

logger = logging.getLogger(__name__)

ZERO = Decimal('0')


def compute_expected_cash(start_cash, cash_revenue, cash_in, cash_out) -> Decimal:
    """
    expected = opening float + cash sales + cash in - cash out.

    Pure: same inputs, same result. 200000 + 78732 + 50000 - 20000 = 308732.
    """
    return (
        Decimal(str(start_cash or 0))
        + Decimal(str(cash_revenue or 0))
        + Decimal(str(cash_in or 0))
        - Decimal(str(cash_out or 0))
    )


def add_cash_log(session, shift_id: int, direction: str, amount, description: str = '',
                 created_by: Optional[int] = None) -> CashLog:
    """
    Append a manual cash movement to an open shift.

    Raises:
        ValidationError: amount <= 0 or unknown direction
        NotFoundError: shift does not exist
        NoActiveShiftError: shift is already closed
        PersistenceError: write rejected
    """
    try:
        direction = CashDirection(str(direction).lower())
    except ValueError:
        raise ValidationError(f"Direction must be 'in' or 'out', got '{direction}'")

    amount = to_decimal(amount, 'Amount')
    if amount <= 0:
        raise ValidationError('Amount must be greater than zero')

    try:
        shift = session.query(Shift).filter(Shift.id == shift_id).first()
        if not shift:
            raise NotFoundError(f'Shift {shift_id} not found')
        if not shift.is_open:
            raise NoActiveShiftError('Cash movements can only be recorded on an open shift')

        entry = CashLog(
            shift_id=shift.id,
            direction=direction,
            amount=amount,
            description=(description or '').strip() or None,
            created_by=created_by,
            created_at=datetime.now(),
        )
        session.add(entry)
        session.commit()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[LEDGER] Error adding cash log to shift {shift_id}: {e}")
        raise PersistenceError(f'Could not save the cash movement: {e.__class__.__name__}')

    logger.info(f"[LEDGER] Shift {shift_id}: cash {direction.value} {amount}")
    publish_change('cash_log', INSERT, entry.to_dict())
    invalidate_summaries()
    return entry


def list_cash_logs(session, shift_id: int) -> List[CashLog]:
    return (
        session.query(CashLog)
        .filter(CashLog.shift_id == shift_id)
        .order_by(CashLog.created_at.asc(), CashLog.id.asc())
        .all()
    )


def get_cash_totals(session, shift_id: int) -> Dict[str, Decimal]:
    """Sum of manual cash in / out for a shift."""
    cash_in, cash_out = session.query(
        func.coalesce(func.sum(case((CashLog.direction == CashDirection.IN, CashLog.amount), else_=0)), 0),
        func.coalesce(func.sum(case((CashLog.direction == CashDirection.OUT, CashLog.amount), else_=0)), 0),
    ).filter(CashLog.shift_id == shift_id).one()

    return {
        'cash_in': Decimal(str(cash_in)),
        'cash_out': Decimal(str(cash_out)),
    }


def _completed_in_window(query, since: Optional[datetime], until: Optional[datetime]):
    query = query.filter(Order.status == OrderStatus.COMPLETED)
    if since is not None:
        query = query.filter(Order.created_at >= since)
    if until is not None:
        query = query.filter(Order.created_at <= until)
    return query


def get_cash_revenue(session, since: Optional[datetime], until: Optional[datetime] = None) -> Decimal:
    """
    Total of completed orders paid in cash, created inside [since, until].

    Attribution is by order creation time, the same rule the drawer
    reconciliation uses.
    """
    query = (
        session.query(func.coalesce(func.sum(Order.total), 0))
        .join(OrderPayment, OrderPayment.order_id == Order.id)
        .filter(OrderPayment.method == PaymentMethod.CASH.value)
    )
    total = _completed_in_window(query, since, until).scalar()
    return Decimal(str(total or 0))


def get_sales_totals(session, since: Optional[datetime], until: Optional[datetime] = None) -> Dict:
    """Completed order count and revenue in the window, split cash / non-cash."""
    is_cash = OrderPayment.method == PaymentMethod.CASH.value
    query = (
        session.query(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total), 0),
            func.coalesce(func.sum(case((is_cash, Order.total), else_=0)), 0),
        )
        .outerjoin(OrderPayment, OrderPayment.order_id == Order.id)
    )
    count, total, cash = _completed_in_window(query, since, until).one()

    total = Decimal(str(total or 0))
    cash = Decimal(str(cash or 0))
    return {
        'order_count': int(count or 0),
        'total_sales': total,
        'cash_sales': cash,
        'non_cash_sales': total - cash,
    }
