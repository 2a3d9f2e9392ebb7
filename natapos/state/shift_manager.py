"""
Shift Manager - active shift per operator, cash movements and the closing
reconciliation.
"""
import copy
import logging
import threading
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from natapos.exceptions import PosError, ValidationError, NoActiveShiftError, UnauthorizedError
from natapos.services import shift_service
from natapos.services.pricing import to_decimal
from natapos.state.events import EventBus, SHIFT_CHANGED
from natapos.state.ledger_store import LedgerStore
from natapos.state.notifications import NotificationCenter

logger = logging.getLogger(__name__)


class ShiftManager:
    """
    Tracks the open shift of each operator on this terminal.

    States per operator: no active shift -> open -> closed. A closed shift is
    never reopened; the next one is a new record.
    """

    def __init__(self, session_factory: Callable, bus: EventBus, notifications: NotificationCenter,
                 ledger: LedgerStore):
        self._session_factory = session_factory
        self.bus = bus
        self.notifications = notifications
        self.ledger = ledger
        self._active: Dict[int, Dict[str, Any]] = {}
        self._lock = threading.RLock()

    def active_shift(self, staff_id: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            shift = self._active.get(staff_id)
            return copy.deepcopy(shift) if shift else None

    def fetch_active_shift(self, staff_id: int) -> Optional[Dict[str, Any]]:
        """
        Reload the operator's open shift. None means "prompt to open one".

        A failed query keeps the last known pointer.
        """
        session = self._session_factory()
        try:
            shift = shift_service.get_active_shift(session, staff_id)
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning(f"[SHIFT] Active shift query failed for staff {staff_id}: {e}")
            self.notifications.warning('Could not check the active shift')
            return self.active_shift(staff_id)

        with self._lock:
            if shift is None:
                self._active.pop(staff_id, None)
            else:
                self._active[staff_id] = shift.to_dict()
        return self.active_shift(staff_id)

    def require_active_shift(self, staff_id: int) -> Dict[str, Any]:
        shift = self.active_shift(staff_id) or self.fetch_active_shift(staff_id)
        if shift is None:
            raise NoActiveShiftError('Open a shift first')
        return shift

    def open_shift(self, staff_id: Optional[int], start_cash) -> Dict[str, Any]:
        """Open a shift with a positive opening float."""
        if staff_id is None:
            raise UnauthorizedError('An operator must be signed in to open a shift')
        amount = to_decimal(start_cash, 'Opening cash')
        if amount <= 0:
            raise ValidationError('Opening cash must be greater than zero')

        try:
            shift = shift_service.open_shift(self._session_factory(), staff_id, amount)
        except PosError as e:
            self.notifications.error(f'Shift not opened: {e.message}')
            raise

        snapshot = shift.to_dict()
        with self._lock:
            self._active[staff_id] = snapshot
        self.bus.publish(SHIFT_CHANGED, {'staff_id': staff_id, 'shift_id': snapshot['id'], 'status': 'open'})
        self.notifications.success('Shift opened')
        return copy.deepcopy(snapshot)

    def add_cash_log(self, shift_id: int, direction: str, amount, description: str = '',
                     created_by: Optional[int] = None) -> Dict[str, Any]:
        """Record a cash in/out against an open shift of this terminal."""
        with self._lock:
            known = any(s['id'] == shift_id for s in self._active.values())
        if not known:
            raise NoActiveShiftError('Cash movements need an active shift')
        return self.ledger.add_entry(shift_id, direction, amount, description, created_by=created_by)

    def get_summary(self, staff_id: int) -> Dict[str, Any]:
        shift = self.require_active_shift(staff_id)
        session = self._session_factory()
        return shift_service.get_shift_summary(session, shift_service.get_shift(session, shift['id']))

    def close_shift(self, staff_id: int, actual_cash, notes: str = '') -> Dict[str, Any]:
        """
        Reconcile and close the operator's shift.

        Returns {expected, actual, difference, shift}. If the write fails the
        active pointer is left untouched and the error is re-raised.
        """
        shift = self.require_active_shift(staff_id)
        try:
            result = shift_service.close_shift(self._session_factory(), shift['id'], actual_cash, notes)
        except PosError as e:
            self.notifications.error(f'Shift not closed: {e.message}')
            raise

        with self._lock:
            self._active.pop(staff_id, None)

        closed = result['shift'].to_dict()
        self.bus.publish(SHIFT_CHANGED, {'staff_id': staff_id, 'shift_id': closed['id'], 'status': 'closed'})
        if result['difference'] == 0:
            self.notifications.success('Shift closed, drawer balanced')
        else:
            self.notifications.warning(f"Shift closed with a difference of {result['difference']}")

        return {
            'expected': result['expected'],
            'actual': result['actual'],
            'difference': result['difference'],
            'shift': closed,
        }

    def list_history(self, filter_by: str = 'all', limit: int = 100) -> Dict[str, Any]:
        history = shift_service.list_shift_history(self._session_factory(), filter_by=filter_by, limit=limit)
        return {
            'shifts': [s.to_dict() for s in history['shifts']],
            'total_variance': history['total_variance'],
            'discrepancy_count': history['discrepancy_count'],
        }

    def apply_remote_change(self, event: Dict[str, Any]) -> None:
        """Follow shifts opened or closed by another terminal for the same operator."""
        record = event.get('record') or {}
        staff_id = record.get('staff_id')
        if staff_id is None:
            return
        with self._lock:
            if record.get('status') == 'open':
                self._active[staff_id] = copy.deepcopy(record)
            elif self._active.get(staff_id, {}).get('id') == record.get('id'):
                self._active.pop(staff_id, None)
            else:
                return
        self.bus.publish(SHIFT_CHANGED, {'staff_id': staff_id, 'shift_id': record.get('id'), 'status': record.get('status')})
