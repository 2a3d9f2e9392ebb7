"""Ledger Store - cash movements of a shift and the revenue figures read from orders."""
import copy
import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from natapos.exceptions import PosError
from natapos.services import ledger_service
from natapos.state.events import EventBus, LEDGER_CHANGED
from natapos.state.notifications import NotificationCenter

logger = logging.getLogger(__name__)


class LedgerStore:
    """Append-only cash log view, grouped by shift."""

    def __init__(self, session_factory: Callable, bus: EventBus, notifications: NotificationCenter):
        self._session_factory = session_factory
        self.bus = bus
        self.notifications = notifications
        self._entries: Dict[int, List[Dict[str, Any]]] = defaultdict(list)
        self._lock = threading.RLock()

    def list_entries(self, shift_id: int, refresh: bool = True) -> List[Dict[str, Any]]:
        if refresh:
            logs = ledger_service.list_cash_logs(self._session_factory(), shift_id)
            with self._lock:
                self._entries[shift_id] = [log.to_dict() for log in logs]
        with self._lock:
            return copy.deepcopy(self._entries.get(shift_id, []))

    def add_entry(self, shift_id: int, direction: str, amount, description: str = '',
                  created_by: Optional[int] = None) -> Dict[str, Any]:
        """Record a cash in/out. Errors are announced and re-raised."""
        try:
            entry = ledger_service.add_cash_log(
                self._session_factory(), shift_id, direction, amount,
                description=description, created_by=created_by,
            )
        except PosError as e:
            self.notifications.error(f'Cash movement not saved: {e.message}')
            raise

        record = entry.to_dict()
        self._append(record)
        self.notifications.success(f"Cash {record['direction']} recorded")
        return copy.deepcopy(record)

    def apply_remote_change(self, event: Dict[str, Any]) -> bool:
        record = event.get('record') or {}
        if record.get('shift_id') is None:
            return False
        return self._append(record)

    def _append(self, record: Dict[str, Any]) -> bool:
        with self._lock:
            entries = self._entries[record['shift_id']]
            if any(e['id'] == record['id'] for e in entries):
                return False
            entries.append(copy.deepcopy(record))
        self.bus.publish(LEDGER_CHANGED, {'shift_id': record['shift_id']})
        return True

    # Aggregates always come from the database, never from the cached list

    def cash_totals(self, shift_id: int):
        return ledger_service.get_cash_totals(self._session_factory(), shift_id)

    def cash_revenue(self, since, until=None):
        return ledger_service.get_cash_revenue(self._session_factory(), since, until)

    def sales_totals(self, since, until=None):
        return ledger_service.get_sales_totals(self._session_factory(), since, until)
