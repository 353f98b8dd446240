"""Fan-out point for ``windows-updated`` events pushed by the OS layer."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

LOG = logging.getLogger(__name__)

WindowsListener = Callable[[Any], None]


class Subscription:
    """Scoped handle for a feed listener; closing it releases the listener."""

    def __init__(self, feed: WindowFeed, listener: WindowsListener) -> None:
        self._feed = feed
        self._listener: WindowsListener | None = listener

    @property
    def active(self) -> bool:
        return self._listener is not None

    def close(self) -> None:
        listener = self._listener
        if listener is None:
            return
        self._listener = None
        self._feed._remove(listener)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class WindowFeed:
    """Deliver each published window list to every current subscriber.

    Payloads are passed through untouched; validation happens in the
    subscriber. Delivery runs on the publishing thread, in subscription order.
    """

    def __init__(self) -> None:
        self._listeners: list[WindowsListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: WindowsListener) -> Subscription:
        with self._lock:
            self._listeners.append(listener)
        return Subscription(self, listener)

    def publish(self, records: Any) -> None:
        with self._lock:
            listeners = list(self._listeners)
        if not listeners:
            LOG.debug("windows-updated published with no subscribers")
        for listener in listeners:
            listener(records)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def _remove(self, listener: WindowsListener) -> None:
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass
