"""In-memory application state of a terminal (stores, observers, cart)."""
from natapos.state.app_state import AppState, init_app_state, get_app_state
from natapos.state.cart import Cart, CartLine, CartRegistry, make_line_key
from natapos.state.checkout import CheckoutCoordinator
from natapos.state.events import EventBus
from natapos.state.inventory_store import InventoryStore
from natapos.state.kitchen_board import KitchenBoard
from natapos.state.ledger_store import LedgerStore
from natapos.state.notifications import NotificationCenter
from natapos.state.order_store import OrderStore, StatusChange
from natapos.state.shift_manager import ShiftManager

__all__ = [
    'AppState', 'init_app_state', 'get_app_state',
    'Cart', 'CartLine', 'CartRegistry', 'make_line_key',
    'CheckoutCoordinator', 'EventBus', 'InventoryStore', 'KitchenBoard',
    'LedgerStore', 'NotificationCenter', 'OrderStore', 'StatusChange', 'ShiftManager',
]
