"""
Shift service - cashier shift lifecycle and cash reconciliation.

Expected cash is always recomputed from source rows (orders + cash logs)
when it is needed; nothing is kept as a running counter.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional
import logging

from sqlalchemy.exc import SQLAlchemyError

from natapos.models import Shift, ShiftStatus, Staff
from natapos.exceptions import (
    PosError, ValidationError, NotFoundError, BusinessLogicError,
    NoActiveShiftError, UnauthorizedError, PersistenceError
)
from natapos.services.ledger_service import (
    compute_expected_cash, get_cash_totals, get_cash_revenue, get_sales_totals
)
from natapos.services.pricing import to_decimal
from natapos.services.realtime_service import publish_change, INSERT, UPDATE

logger = logging.getLogger(__name__)

HISTORY_FILTERS = ('all', 'discrepancy', 'ok')


def _to_amount(value, field: str) -> Decimal:
    return to_decimal(value, field.capitalize())


def get_active_shift(session, staff_id: Optional[int] = None) -> Optional[Shift]:
    """
    Most recent open shift (for `staff_id` when given).

    None is a normal answer: the terminal then prompts to open a shift.
    """
    query = session.query(Shift).filter(Shift.status == ShiftStatus.OPEN)
    if staff_id is not None:
        query = query.filter(Shift.staff_id == staff_id)
    return query.order_by(Shift.opened_at.desc(), Shift.id.desc()).first()


def get_shift(session, shift_id: int) -> Shift:
    shift = session.query(Shift).filter(Shift.id == shift_id).first()
    if not shift:
        raise NotFoundError(f'Shift {shift_id} not found')
    return shift


def open_shift(session, staff_id: Optional[int], start_cash) -> Shift:
    """
    Open a shift for an operator with an opening float.

    Raises:
        UnauthorizedError: no operator, or unknown/inactive operator
        ValidationError: negative float
        BusinessLogicError: the operator already has an open shift
    """
    if staff_id is None:
        raise UnauthorizedError('An operator must be signed in to open a shift')

    start_cash = _to_amount(start_cash, 'opening cash')
    if start_cash < 0:
        raise ValidationError('Opening cash cannot be negative')

    try:
        staff = session.query(Staff).filter(Staff.id == staff_id).first()
        if not staff or not staff.active:
            raise UnauthorizedError('Unknown or inactive operator')

        if get_active_shift(session, staff_id) is not None:
            raise BusinessLogicError('This operator already has an open shift')

        shift = Shift(
            staff_id=staff_id,
            start_cash=start_cash,
            status=ShiftStatus.OPEN,
            opened_at=datetime.now(),
        )
        session.add(shift)
        session.commit()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[SHIFT] Error opening shift for staff {staff_id}: {e}")
        raise PersistenceError(f'Could not open the shift: {e.__class__.__name__}')

    logger.info(f"[SHIFT] Opened shift {shift.id} for staff {staff_id} with float {start_cash}")
    publish_change('shift', INSERT, shift.to_dict())
    return shift


def calculate_expected_cash(session, shift: Shift, until: Optional[datetime] = None) -> Dict[str, Decimal]:
    """
    Breakdown of the drawer figure for `shift` up to `until` (default now).

    Revenue counts every completed cash order created since the shift
    opened, whichever terminal took it.
    """
    until = until or datetime.now()
    revenue = get_cash_revenue(session, shift.opened_at, until)
    totals = get_cash_totals(session, shift.id)
    expected = compute_expected_cash(shift.start_cash, revenue, totals['cash_in'], totals['cash_out'])
    return {
        'start_cash': Decimal(str(shift.start_cash)),
        'cash_revenue': revenue,
        'cash_in': totals['cash_in'],
        'cash_out': totals['cash_out'],
        'expected': expected,
    }


def close_shift(session, shift_id: int, actual_cash, notes: str = '') -> Dict[str, Any]:
    """
    Reconcile and close a shift in a single update.

    Returns {expected, actual, difference, shift}. The figures are returned
    for display only; the caller has to capture them now.

    On any failure the transaction is rolled back and the shift stays open.
    """
    actual = _to_amount(actual_cash, 'counted cash')
    if actual < 0:
        raise ValidationError('Counted cash cannot be negative')

    try:
        shift = get_shift(session, shift_id)
        if not shift.is_open:
            raise NoActiveShiftError('Shift is already closed')

        closed_at = datetime.now()
        breakdown = calculate_expected_cash(session, shift, until=closed_at)
        expected = breakdown['expected']
        difference = actual - expected

        shift.status = ShiftStatus.CLOSED
        shift.closed_at = closed_at
        shift.end_cash_actual = actual
        shift.end_cash_expected = expected
        shift.difference = difference
        shift.notes = (notes or '').strip() or None
        session.commit()
    except PosError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"[SHIFT] Error closing shift {shift_id}: {e}")
        raise PersistenceError(f'Could not close the shift: {e.__class__.__name__}')

    outcome = 'balanced' if difference == 0 else ('over' if difference > 0 else 'short')
    logger.info(f"[SHIFT] Closed shift {shift_id}: expected={expected} actual={actual} diff={difference}")
    from natapos.blueprints.metrics import shifts_closed_total
    shifts_closed_total.labels(outcome=outcome).inc()
    publish_change('shift', UPDATE, shift.to_dict())

    return {
        'expected': expected,
        'actual': actual,
        'difference': difference,
        'shift': shift,
    }


def _build_summary(session, shift: Shift) -> Dict[str, Any]:
    now = datetime.now()
    sales = get_sales_totals(session, shift.opened_at, now)
    breakdown = calculate_expected_cash(session, shift, until=now)
    return {
        'shift_id': shift.id,
        'opened_at': shift.opened_at,
        'start_cash': breakdown['start_cash'],
        'total_sales': sales['total_sales'],
        'cash_sales': sales['cash_sales'],
        'non_cash_sales': sales['non_cash_sales'],
        'order_count': sales['order_count'],
        'cash_in': breakdown['cash_in'],
        'cash_out': breakdown['cash_out'],
        'expected_cash': breakdown['expected'],
    }


def get_shift_summary(session, shift: Shift, use_cache: bool = True) -> Dict[str, Any]:
    """
    Live figures for an open shift (display only).

    Cached for CACHE_SUMMARY_TTL seconds and dropped on every sale or cash
    movement. close_shift() never reads this cache.
    """
    if not use_cache:
        return _build_summary(session, shift)

    try:
        from flask import current_app
        from natapos.services.cache_service import get_cache

        cache = get_cache()
        ttl = current_app.config.get('CACHE_SUMMARY_TTL', 30)
        return cache.remember('shift_summary', str(shift.id), ttl, lambda: _build_summary(session, shift))
    except RuntimeError as e:
        logger.debug(f"[CACHE] Summary cache unavailable (continuing without cache): {e}")
        return _build_summary(session, shift)


def list_shift_history(session, filter_by: str = 'all', limit: int = 100, staff_id: Optional[int] = None) -> Dict[str, Any]:
    """
    Closed shifts, newest first.

    filter_by: 'all', 'discrepancy' (difference != 0) or 'ok' (difference == 0)

    Returns:
        dict with shifts, total_variance (sum of differences) and
        discrepancy_count, computed over the filtered list.
    """
    if filter_by not in HISTORY_FILTERS:
        raise ValidationError(f"Filter must be one of {', '.join(HISTORY_FILTERS)}")

    query = session.query(Shift).filter(Shift.status == ShiftStatus.CLOSED)
    if staff_id is not None:
        query = query.filter(Shift.staff_id == staff_id)
    if filter_by == 'discrepancy':
        query = query.filter(Shift.difference != 0)
    elif filter_by == 'ok':
        query = query.filter(Shift.difference == 0)

    shifts = query.order_by(Shift.closed_at.desc(), Shift.id.desc()).limit(limit).all()

    total_variance = sum((Decimal(str(s.difference or 0)) for s in shifts), Decimal('0'))
    discrepancy_count = sum(1 for s in shifts if (s.difference or 0) != 0)

    return {
        'shifts': shifts,
        'total_variance': total_variance,
        'discrepancy_count': discrepancy_count,
    }
