"""
Order Store - the terminal's in-memory view of orders.

Status changes are applied locally first and then written; a failed write
replays the recorded prior status. Realtime pushes are merged by order
version so an older payload never overwrites a newer one.
"""
import copy
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from natapos.exceptions import PosError, ConcurrentUpdateError, InvalidTransitionError, ValidationError
from natapos.models import OrderStatus, ACTIVE_STATUSES, TERMINAL_STATUSES, can_transition
from natapos.services import order_service
from natapos.state.events import EventBus, ORDERS_CHANGED
from natapos.state.notifications import NotificationCenter

logger = logging.getLogger(__name__)


@dataclass
class StatusChange:
    """
    One tentative status transition and its undo.

    `previous` is read from the cache when the change is created, so undo
    always restores what the order actually showed before.
    """

    store: 'OrderStore'
    order_id: int
    previous: str
    target: str
    base_version: Optional[int] = None
    applied: bool = False

    def apply(self) -> None:
        self.store._set_local_status(self.order_id, self.target)
        self.applied = True

    def undo(self) -> bool:
        """Restore `previous` unless a newer version already replaced the entry."""
        if not self.applied:
            return False
        reverted = self.store._revert_local_status(self)
        self.applied = False
        return reverted


class OrderStore:
    """Orders cache for one client, fed by direct actions and the realtime feed."""

    def __init__(self, session_factory: Callable, bus: EventBus, notifications: NotificationCenter,
                 fetch_limit: int = 100):
        self._session_factory = session_factory
        self.bus = bus
        self.notifications = notifications
        self.fetch_limit = fetch_limit
        # Oldest first; replacing an entry keeps its position
        self._orders: "OrderedDict[int, Dict[str, Any]]" = OrderedDict()
        self._in_flight = set()
        self.loaded = False
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, order_id: int) -> Optional[Dict[str, Any]]:
        with self._lock:
            order = self._orders.get(order_id)
            return copy.deepcopy(order) if order is not None else None

    def all(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(o) for o in self._orders.values()]

    def _with_status(self, statuses) -> List[Dict[str, Any]]:
        wanted = {s.value for s in statuses}
        return [o for o in self.all() if o['status'] in wanted]

    def active_orders(self) -> List[Dict[str, Any]]:
        """Orders still on the kitchen board (waiting, cooking, ready)."""
        return self._with_status(ACTIVE_STATUSES)

    def completed_orders(self) -> List[Dict[str, Any]]:
        """Orders in a terminal status (completed, refunded, cancelled)."""
        return self._with_status(TERMINAL_STATUSES)

    def is_pending(self, order_id: int) -> bool:
        with self._lock:
            return order_id in self._in_flight

    def load(self, since=None) -> List[Dict[str, Any]]:
        """
        Refresh the cache from the database.

        Active orders are always loaded in full; `fetch_limit` only caps the
        terminal history. A failed fetch keeps the last known list and raises
        a warning notification instead of an error.
        """
        session = self._session_factory()
        try:
            active = order_service.list_orders(session, statuses=ACTIVE_STATUSES, since=since)
            history = order_service.list_orders(session, statuses=TERMINAL_STATUSES, since=since,
                                                limit=self.fetch_limit)
            orders = sorted(active + history, key=lambda o: (o.created_at, o.id))
            snapshots = [o.to_dict() for o in orders]
        except (SQLAlchemyError, PosError) as e:
            session.rollback()
            logger.warning(f"[ORDERS] Fetch failed, keeping {len(self._orders)} cached orders: {e}")
            self.notifications.warning('Could not refresh orders, showing last known list')
            return self.all()

        with self._lock:
            self._orders = OrderedDict((o['id'], o) for o in snapshots)
            self.loaded = True
        self.bus.publish(ORDERS_CHANGED, {'reason': 'load'})
        return self.all()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_order(self, items, order_type='dine-in', meta=None, payment=None,
                     status=OrderStatus.WAITING.value, discount_percent=0, tax_rate=None,
                     staff_id=None) -> Dict[str, Any]:
        """
        Persist a new order and add it to the cache.

        Returns the order snapshot (its `id` is the confirmation). On failure
        nothing is cached, an error notification is raised and the error is
        re-raised so the caller stops.
        """
        try:
            order = order_service.create_order(
                self._session_factory(), items,
                order_type=order_type, meta=meta, payment=payment, status=status,
                discount_percent=discount_percent, tax_rate=tax_rate, staff_id=staff_id,
            )
            snapshot = order.to_dict()
        except PosError as e:
            self.notifications.error(f'Order was not created: {e.message}')
            raise

        self._merge(snapshot)
        self.notifications.success(f"Order {snapshot['order_number']} created")
        return copy.deepcopy(snapshot)

    def update_status(self, order_id: int, new_status) -> Dict[str, Any]:
        """
        Optimistically move an order to `new_status`, then write it.

        - Same status: no-op, nothing is written.
        - Another write for the same order still pending: rejected.
        - Write fails: local status goes back to what it was, an error
          notification is raised and the error is re-raised.
        """
        try:
            target = OrderStatus(new_status).value
        except ValueError:
            raise ValidationError(f'Unknown order status: {new_status}')

        current = self.get(order_id)
        if current is None:
            current = self.fetch(order_id)

        if current['status'] == target:
            return current
        if not can_transition(current['status'], target):
            error = InvalidTransitionError(current['status'], target)
            self.notifications.error(error.message, order_id=order_id)
            raise error

        with self._lock:
            if order_id in self._in_flight:
                raise ConcurrentUpdateError('A status change for this order is already in progress')
            self._in_flight.add(order_id)
            change = StatusChange(self, order_id, current['status'], target, base_version=current['version'])
            change.apply()

        try:
            order = order_service.update_order_status(
                self._session_factory(), order_id, target, expected_version=current['version']
            )
            snapshot = order.to_dict()
        except PosError as e:
            change.undo()
            from natapos.blueprints.metrics import optimistic_rollbacks_total
            optimistic_rollbacks_total.inc()
            logger.warning(f"[ORDERS] Rolled back order {order_id} to '{change.previous}': {e.message}")
            self.notifications.error(
                f"Could not move order to {target}: {e.message}", order_id=order_id
            )
            raise
        finally:
            with self._lock:
                self._in_flight.discard(order_id)

        self._merge(snapshot)
        return self.get(order_id)

    # ------------------------------------------------------------------
    # Realtime
    # ------------------------------------------------------------------

    def apply_remote_change(self, event: Dict[str, Any]) -> bool:
        """Merge a pushed INSERT/UPDATE. Returns True if the cache changed."""
        record = event.get('record') if 'record' in event else event
        if not record or record.get('id') is None:
            return False
        return self._merge(record)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def fetch(self, order_id: int) -> Dict[str, Any]:
        snapshot = order_service.get_order(self._session_factory(), order_id).to_dict()
        self._merge(snapshot)
        return copy.deepcopy(snapshot)

    def _merge(self, record: Dict[str, Any]) -> bool:
        """Last-writer-wins by version: equal or older payloads are ignored."""
        with self._lock:
            cached = self._orders.get(record['id'])
            if cached is not None and (record.get('version') or 0) <= (cached.get('version') or 0):
                return False
            self._orders[record['id']] = copy.deepcopy(record)
        self.bus.publish(ORDERS_CHANGED, {'order_id': record['id'], 'status': record['status']})
        return True

    def _set_local_status(self, order_id: int, status: str) -> None:
        with self._lock:
            self._orders[order_id]['status'] = status
        self.bus.publish(ORDERS_CHANGED, {'order_id': order_id, 'status': status, 'optimistic': True})

    def _revert_local_status(self, change: StatusChange) -> bool:
        with self._lock:
            cached = self._orders.get(change.order_id)
            if cached is None or cached.get('version') != change.base_version:
                return False
            cached['status'] = change.previous
        self.bus.publish(ORDERS_CHANGED, {'order_id': change.order_id, 'status': change.previous, 'reverted': True})
        return True
