"""Models package - exports all SQLAlchemy models."""
# Operators
from natapos.models.staff import Staff, StaffRole

# Orders
from natapos.models.order import (
    Order, OrderItem, OrderStatus, OrderType,
    ACTIVE_STATUSES, TERMINAL_STATUSES, ORDER_TRANSITIONS, can_transition, is_terminal
)
from natapos.models.order_payment import OrderPayment, PaymentMethod, PaymentStatus, normalize_payment_method
from natapos.models.order_sequence import OrderSequence

# Cash drawer
from natapos.models.shift import Shift, ShiftStatus
from natapos.models.cash_log import CashLog, CashDirection

# Inventory mirror
from natapos.models.stock_item import StockItem
from natapos.models.inventory_adjustment import InventoryAdjustment, InventoryAdjustmentItem

__all__ = [
    'Staff', 'StaffRole',
    'Order', 'OrderItem', 'OrderStatus', 'OrderType',
    'ACTIVE_STATUSES', 'TERMINAL_STATUSES', 'ORDER_TRANSITIONS', 'can_transition', 'is_terminal',
    'OrderPayment', 'PaymentMethod', 'PaymentStatus', 'normalize_payment_method',
    'OrderSequence',
    'Shift', 'ShiftStatus', 'CashLog', 'CashDirection',
    'StockItem', 'InventoryAdjustment', 'InventoryAdjustmentItem',
]
