"""Inventory Store - mirror of stock levels kept current by the realtime feed."""
import copy
import logging
import threading
from collections import OrderedDict
from decimal import Decimal
from typing import Any, Callable, Dict, List

from sqlalchemy.exc import SQLAlchemyError

from natapos.exceptions import PosError
from natapos.services import inventory_service
from natapos.state.events import EventBus, STOCK_CHANGED
from natapos.state.notifications import NotificationCenter

logger = logging.getLogger(__name__)


class InventoryStore:

    def __init__(self, session_factory: Callable, bus: EventBus, notifications: NotificationCenter):
        self._session_factory = session_factory
        self.bus = bus
        self.notifications = notifications
        self._items: "OrderedDict[int, Dict[str, Any]]" = OrderedDict()
        self.loaded = False
        self._lock = threading.RLock()

    def load(self) -> List[Dict[str, Any]]:
        session = self._session_factory()
        try:
            items = [i.to_dict() for i in inventory_service.list_stock_items(session)]
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning(f"[INVENTORY] Fetch failed, keeping last known stock: {e}")
            self.notifications.warning('Could not refresh stock levels')
            return self.items()

        with self._lock:
            self._items = OrderedDict((i['id'], i) for i in items)
            self.loaded = True
        self.bus.publish(STOCK_CHANGED, {'reason': 'load'})
        return self.items()

    def items(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(i) for i in self._items.values()]

    def low_stock(self) -> List[Dict[str, Any]]:
        """Items at or below their minimum."""
        return [
            i for i in self.items()
            if Decimal(str(i['current_stock'] or 0)) <= Decimal(str(i['min_stock'] or 0))
        ]

    def update_stock(self, item_id: int, new_quantity) -> Dict[str, Any]:
        try:
            item = inventory_service.update_stock(self._session_factory(), item_id, new_quantity)
        except PosError as e:
            self.notifications.error(f'Stock not updated: {e.message}')
            raise
        record = item.to_dict()
        self._merge(record)
        return copy.deepcopy(record)

    def create_adjustment(self, lines, notes: str = '', created_by=None) -> Dict[str, Any]:
        """Save a physical count; counted items in the mirror take the new levels."""
        try:
            adjustment = inventory_service.create_adjustment(
                self._session_factory(), lines, notes=notes, created_by=created_by
            )
            records = [line.stock_item.to_dict() for line in adjustment.items]
            result = adjustment.to_dict()
        except PosError as e:
            self.notifications.error(f'Stock count not saved: {e.message}')
            raise
        for record in records:
            self._merge(record)
        self.notifications.success(f"Stock count saved ({len(records)} items)")
        return result

    def apply_remote_change(self, event: Dict[str, Any]) -> bool:
        record = event.get('record') or {}
        if record.get('id') is None:
            return False
        return self._merge(record)

    def _merge(self, record: Dict[str, Any]) -> bool:
        with self._lock:
            cached = self._items.get(record['id'])
            if cached is not None and (record.get('version') or 0) <= (cached.get('version') or 0):
                return False
            self._items[record['id']] = copy.deepcopy(record)
        self.bus.publish(STOCK_CHANGED, {'item_id': record['id']})
        return True
