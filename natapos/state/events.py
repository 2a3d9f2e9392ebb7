"""Observer-style event bus shared by the application-state objects."""
import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Handler = Callable[[str, Any], None]

# Topics
ORDERS_CHANGED = 'orders.changed'
SHIFT_CHANGED = 'shift.changed'
LEDGER_CHANGED = 'ledger.changed'
CART_CHANGED = 'cart.changed'
STOCK_CHANGED = 'stock.changed'
NOTIFICATION = 'notification'


class EventBus:
    """
    Synchronous publish/subscribe.

    Handlers run in the publisher's thread, in subscription order. A failing
    handler is logged and skipped.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)
        self._lock = threading.RLock()

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._handlers[topic].append(handler)

        def unsubscribe():
            with self._lock:
                if handler in self._handlers[topic]:
                    self._handlers[topic].remove(handler)
        return unsubscribe

    def publish(self, topic: str, payload: Any = None) -> None:
        with self._lock:
            handlers = list(self._handlers.get(topic, []))
        for handler in handlers:
            try:
                handler(topic, payload)
            except Exception:
                logger.exception(f"[EVENTS] Handler failed for {topic}")

    def handler_count(self, topic: str) -> int:
        with self._lock:
            return len(self._handlers.get(topic, []))
