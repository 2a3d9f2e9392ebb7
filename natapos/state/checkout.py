"""
Checkout Coordinator - turns a cart into a paid order.

Counter checkout records the order as already `completed`: it never goes
through the kitchen board. Table-service orders are created separately
(waiting) and walk the kitchen workflow.
"""
import logging
import threading
from typing import Any, Dict, Optional

from natapos.exceptions import ValidationError, ConcurrentUpdateError, PersistenceError
from natapos.models import OrderStatus, OrderType
from natapos.services.payment_service import validate_payment, build_payment_record
from natapos.state.cart import Cart
from natapos.state.notifications import NotificationCenter
from natapos.state.order_store import OrderStore

logger = logging.getLogger(__name__)


class CheckoutCoordinator:

    def __init__(self, orders: OrderStore, notifications: NotificationCenter):
        self.orders = orders
        self.notifications = notifications
        self._processing = set()
        self._lock = threading.Lock()

    def compute_totals(self, cart: Cart) -> Dict[str, Any]:
        """subtotal, tax (checkout rate), grand_total and tax_rate for the cart."""
        return cart.totals()

    def preview(self, cart: Cart, method: str = 'cash', cash_received=None) -> Dict[str, Any]:
        """Totals plus the change the cashier will hand back. Raises if payment is short."""
        if cart.is_empty:
            raise ValidationError('Cart is empty')
        totals = self.compute_totals(cart)
        payment = validate_payment(method, cash_received, totals['grand_total'])
        return {**totals, 'method': payment['method'], 'change': payment['change']}

    def is_processing(self, cart: Cart) -> bool:
        with self._lock:
            return id(cart) in self._processing

    def confirm_payment(self, cart: Cart, method: str = 'cash', cash_received=None,
                        order_type: str = OrderType.DINE_IN.value, table: Optional[str] = None,
                        customer: Optional[Dict[str, Any]] = None, staff_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Validate the payment, persist the order and only then empty the cart.

        Validation failures (empty cart, short cash) happen before any write.
        A failed write leaves the cart intact for a retry.
        """
        if cart.is_empty:
            raise ValidationError('Cart is empty')

        with self._lock:
            if id(cart) in self._processing:
                raise ConcurrentUpdateError('Checkout already in progress for this cart')
            self._processing.add(id(cart))

        try:
            totals = self.compute_totals(cart)
            validated = validate_payment(method, cash_received, totals['grand_total'])
            payment = build_payment_record(validated)

            meta = {'table': table, 'customer': customer or None}
            order = self.orders.create_order(
                cart.order_items(),
                order_type=order_type,
                meta=meta,
                payment=payment,
                status=OrderStatus.COMPLETED.value,
                tax_rate=totals['tax_rate'],
                staff_id=staff_id,
            )
            if not order.get('id'):
                raise PersistenceError('Order was not confirmed by the database')

            cart.clear()
        finally:
            with self._lock:
                self._processing.discard(id(cart))

        logger.info(f"[CHECKOUT] {order['order_number']} paid by {payment['method']} ({payment['transaction_id']})")
        return {
            'order': order,
            'subtotal': totals['subtotal'],
            'tax': totals['tax'],
            'grand_total': totals['grand_total'],
            'change': validated['change'],
            'transaction_id': payment['transaction_id'],
        }
