"""
Realtime change feed.

Delivers insert/update events for the `orders`, `stock_item`, `shift` and
`cash_log` tables to subscribers. Inside one process events are dispatched
synchronously after the write commits; when Redis is reachable they are also
published on Pub/Sub so every other terminal process receives them.
"""
import logging
import threading
import uuid
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

import redis
from redis.exceptions import RedisError
from flask import Flask

from natapos.utils.serialization import dumps, loads

logger = logging.getLogger(__name__)

INSERT = 'INSERT'
UPDATE = 'UPDATE'

Callback = Callable[[Dict[str, Any]], None]


class RealtimeFeed:
    """Table change feed with per-client subscriptions."""

    def __init__(self, app: Optional[Flask] = None):
        self.origin = uuid.uuid4().hex
        self._subscriptions: Dict[str, List[tuple]] = defaultdict(list)
        self._lock = threading.RLock()
        self._client: Optional[redis.Redis] = None
        self._pubsub = None
        self._thread = None
        self._channel_prefix = 'natapos:realtime'

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        self._channel_prefix = app.config.get('REALTIME_CHANNEL_PREFIX', self._channel_prefix)
        if not app.config.get('REALTIME_ENABLED', True):
            logger.info("[REALTIME] Redis fan-out DISABLED, in-process delivery only")
            return

        try:
            self._client = redis.from_url(
                app.config.get('REDIS_URL', 'redis://redis:6379/0'),
                socket_connect_timeout=3,
                health_check_interval=30,
            )
            self._client.ping()
            self._pubsub = self._client.pubsub(ignore_subscribe_messages=True)
            self._pubsub.psubscribe(**{f"{self._channel_prefix}:*": self._on_redis_message})
            self._thread = self._pubsub.run_in_thread(sleep_time=0.5, daemon=True)
            logger.info(f"[REALTIME] Listening on {self._channel_prefix}:*")
        except RedisError as e:
            logger.warning(f"[REALTIME] Redis unavailable ({e}), in-process delivery only")
            self._client = None
            self._pubsub = None

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, table: str, callback: Callback, client_id: Optional[str] = None) -> Callable[[], None]:
        """Register `callback` for changes on `table`. Returns an unsubscribe function."""
        entry = (client_id, callback)
        with self._lock:
            self._subscriptions[table].append(entry)

        def unsubscribe():
            with self._lock:
                if entry in self._subscriptions[table]:
                    self._subscriptions[table].remove(entry)
        return unsubscribe

    def unsubscribe_all(self, client_id: str) -> int:
        """Release every channel held by `client_id`."""
        removed = 0
        with self._lock:
            for table, entries in self._subscriptions.items():
                keep = [e for e in entries if e[0] != client_id]
                removed += len(entries) - len(keep)
                self._subscriptions[table] = keep
        return removed

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(table, []))

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def publish(self, table: str, event_type: str, record: Dict[str, Any]) -> None:
        """Deliver locally, then fan out to other processes."""
        event = {'table': table, 'type': event_type, 'record': record, 'origin': self.origin}
        self._dispatch(event)

        if self._client is not None:
            try:
                self._client.publish(f"{self._channel_prefix}:{table}", dumps(event))
            except (RedisError, TypeError) as e:
                logger.warning(f"[REALTIME] Redis publish failed: {e}")

    def _on_redis_message(self, message) -> None:
        try:
            data = message['data']
            if isinstance(data, bytes):
                data = data.decode('utf-8')
            event = loads(data)
        except (ValueError, KeyError) as e:
            logger.warning(f"[REALTIME] Dropping malformed message: {e}")
            return
        if event.get('origin') == self.origin:
            return  # already delivered in-process
        self._dispatch(event)

    def _dispatch(self, event: Dict[str, Any]) -> None:
        with self._lock:
            entries = list(self._subscriptions.get(event['table'], []))
        for _, callback in entries:
            try:
                callback(event)
            except Exception:
                # One broken subscriber must not starve the others
                logger.exception(f"[REALTIME] Subscriber failed on {event['table']} {event['type']}")

    def close(self) -> None:
        if self._thread is not None:
            self._thread.stop()
            self._thread = None
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None


_feed: Optional[RealtimeFeed] = None


def init_realtime(app: Flask) -> RealtimeFeed:
    """Initialize the realtime feed singleton."""
    global _feed
    if _feed is not None:
        _feed.close()
    _feed = RealtimeFeed(app)
    app.extensions['realtime'] = _feed
    return _feed


def get_realtime() -> RealtimeFeed:
    if _feed is None:
        raise RuntimeError("Realtime feed not initialized.")
    return _feed


def publish_change(table: str, event_type: str, record: Dict[str, Any]) -> None:
    """Best-effort event emission: never breaks the write that triggered it."""
    if _feed is None:
        logger.debug(f"[REALTIME] No feed, dropping {table} {event_type}")
        return
    try:
        _feed.publish(table, event_type, record)
    except Exception as e:
        logger.warning(f"[REALTIME] Publish failed for {table} {event_type}: {e}")
