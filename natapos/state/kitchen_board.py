"""Kitchen Board Controller - three lanes over the Order Store."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from natapos.exceptions import ValidationError, BusinessLogicError
from natapos.models import OrderStatus
from natapos.services import kitchen_service
from natapos.state.order_store import OrderStore


class KitchenBoard:
    """
    Waiting / cooking / ready lanes.

    Cards keep the Order Store's order (oldest first) and are never re-sorted
    by elapsed time, so a card changing lane does not make the others jump.
    Elapsed time and urgency are recomputed from `created_at` on every call.
    """

    def __init__(self, orders: OrderStore):
        self.orders = orders

    def board(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now()
        lanes: Dict[str, List[Dict[str, Any]]] = {lane.value: [] for lane in kitchen_service.LANES}

        for order in self.orders.active_orders():
            lanes[order['status']].append(kitchen_service.build_card(order, now))

        return {
            'lanes': lanes,
            'counts': {lane: len(cards) for lane, cards in lanes.items()},
            'generated_at': now,
        }

    def drop(self, order_id: int, lane: str) -> Dict[str, Any]:
        """Card dropped on `lane`. Dropping on its own lane changes nothing."""
        try:
            target = OrderStatus(lane)
        except ValueError:
            raise ValidationError(f'Unknown lane: {lane}')
        if target not in kitchen_service.LANES:
            raise ValidationError(f'Unknown lane: {lane}')
        return self.orders.update_status(order_id, target.value)

    def advance(self, order_id: int) -> Dict[str, Any]:
        """Lane button: start cooking, mark ready, or recall a ready order."""
        order = self.orders.get(order_id)
        if order is None:
            order = self.orders.fetch(order_id)
        action = kitchen_service.lane_action(order['status'])
        if action is None:
            raise BusinessLogicError(f"Order in status '{order['status']}' is not on the kitchen board")
        return self.orders.update_status(order_id, action['target'])

    def batching_summary(self) -> List[Dict[str, Any]]:
        return kitchen_service.batching_summary(self.orders.active_orders())
