"""User-facing notifications (toasts) raised by the state objects."""
import itertools
import logging
import threading
from collections import deque
from datetime import datetime
from typing import Any, Dict, List, Optional

from natapos.state.events import EventBus, NOTIFICATION

logger = logging.getLogger(__name__)

SUCCESS = 'success'
INFO = 'info'
WARNING = 'warning'
ERROR = 'error'


class NotificationCenter:
    """Keeps the most recent notifications and announces new ones on the bus."""

    def __init__(self, bus: Optional[EventBus] = None, max_items: int = 50):
        self.bus = bus
        self._items = deque(maxlen=max_items)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def push(self, level: str, message: str, **context) -> Dict[str, Any]:
        notification = {
            'id': next(self._ids),
            'level': level,
            'message': message,
            'context': context,
            'created_at': datetime.now(),
        }
        with self._lock:
            self._items.append(notification)
        if self.bus is not None:
            self.bus.publish(NOTIFICATION, notification)
        return notification

    def success(self, message: str, **context):
        return self.push(SUCCESS, message, **context)

    def info(self, message: str, **context):
        return self.push(INFO, message, **context)

    def warning(self, message: str, **context):
        return self.push(WARNING, message, **context)

    def error(self, message: str, **context):
        return self.push(ERROR, message, **context)

    def list(self, level: Optional[str] = None) -> List[Dict[str, Any]]:
        """Newest first."""
        with self._lock:
            items = list(self._items)
        if level:
            items = [n for n in items if n['level'] == level]
        return list(reversed(items))

    def dismiss(self, notification_id: int) -> bool:
        with self._lock:
            for n in list(self._items):
                if n['id'] == notification_id:
                    self._items.remove(n)
                    return True
        return False

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
