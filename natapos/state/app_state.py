"""Application state - the stores of one terminal process, wired together."""
import logging
import uuid
from typing import Callable, Optional

from flask import Flask, current_app

from natapos.state.cart import CartRegistry
from natapos.state.checkout import CheckoutCoordinator
from natapos.state.events import EventBus
from natapos.state.inventory_store import InventoryStore
from natapos.state.kitchen_board import KitchenBoard
from natapos.state.ledger_store import LedgerStore
from natapos.state.notifications import NotificationCenter
from natapos.state.order_store import OrderStore
from natapos.state.shift_manager import ShiftManager

logger = logging.getLogger(__name__)


class AppState:
    """
    Holds every store and passes them to each other explicitly.

    Nothing here is a module global: the instance lives in
    `app.extensions['pos']`.
    """

    def __init__(self, session_factory: Callable, fetch_limit: int = 100):
        self.client_id = uuid.uuid4().hex
        self.bus = EventBus()
        self.notifications = NotificationCenter(self.bus)
        self.orders = OrderStore(session_factory, self.bus, self.notifications, fetch_limit=fetch_limit)
        self.ledger = LedgerStore(session_factory, self.bus, self.notifications)
        self.shifts = ShiftManager(session_factory, self.bus, self.notifications, self.ledger)
        self.kitchen = KitchenBoard(self.orders)
        self.carts = CartRegistry(self.bus)
        self.checkout = CheckoutCoordinator(self.orders, self.notifications)
        self.inventory = InventoryStore(session_factory, self.bus, self.notifications)
        self._feed = None

    def connect(self, feed) -> None:
        """Subscribe the stores to the realtime change feed."""
        self._feed = feed
        feed.subscribe('orders', self.orders.apply_remote_change, client_id=self.client_id)
        feed.subscribe('stock_item', self.inventory.apply_remote_change, client_id=self.client_id)
        feed.subscribe('shift', self.shifts.apply_remote_change, client_id=self.client_id)
        feed.subscribe('cash_log', self.ledger.apply_remote_change, client_id=self.client_id)
        logger.info(f"[STATE] Client {self.client_id} subscribed to realtime feed")

    def disconnect(self) -> int:
        """Release every realtime channel held by this client."""
        if self._feed is None:
            return 0
        removed = self._feed.unsubscribe_all(self.client_id)
        self._feed = None
        return removed


def init_app_state(app: Flask, session_factory: Callable, feed=None) -> AppState:
    state = AppState(session_factory, fetch_limit=app.config.get('ORDER_FETCH_LIMIT', 100))
    if feed is not None:
        state.connect(feed)
    app.extensions['pos'] = state
    return state


def get_app_state(app: Optional[Flask] = None) -> AppState:
    app = app or current_app
    state = app.extensions.get('pos')
    if state is None:
        raise RuntimeError("Application state not initialized.")
    return state
