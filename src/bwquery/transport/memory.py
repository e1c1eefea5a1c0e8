"""In-process publish/subscribe transport.

Every subscription owns its own queue; publishing delivers a fresh
:class:`InboundMessage` to each subscription whose topic is an exact match.
Useful for tests and for embedding an archiver in the same process.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Dict, List, Optional, Sequence

from ..protocol.message import InboundMessage, PayloadObject
from .base import (
    PublishError,
    StreamClosed,
    Subscription as BaseSubscription,
    SubscriptionError,
    Transport as BaseTransport,
)

log = logging.getLogger(__name__)

_END = object()


class Subscription(BaseSubscription):
    """Queue-backed subscription.

    When the transport goes away the stream ends after any messages already
    queued; when the subscriber closes it, queued messages are discarded.
    """

    def __init__(self, transport: "Transport", topic: str):
        super().__init__(topic)
        self._transport = transport
        self._queue = queue.SimpleQueue()
        self._closed = False
        self._ended = False

    def _deliver(self, message: InboundMessage) -> None:
        self._queue.put(message)

    def _end(self) -> None:
        self._queue.put(_END)

    def recv(self, timeout: Optional[float] = None) -> Optional[InboundMessage]:
        if self._closed or self._ended:
            raise StreamClosed(f"subscription to {self.topic} is closed")

        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

        if item is _END:
            self._ended = True
            raise StreamClosed(f"subscription to {self.topic} has ended")

        if self._closed:
            raise StreamClosed(f"subscription to {self.topic} is closed")

        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._transport._forget(self)

        # Wake up anyone blocked in recv().
        self._queue.put(_END)

    @property
    def closed(self) -> bool:
        return self._closed or self._ended


class Transport(BaseTransport):
    """In-memory topic bus."""

    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._lock = threading.Lock()
        self._closed = False

    def publish(self, topic: str, payload_objects: Sequence[PayloadObject]) -> None:
        if self._closed:
            raise PublishError(f"transport is closed, cannot publish to {topic}")

        with self._lock:
            targets = list(self._subscriptions.get(topic, ()))

        log.debug("publish to %s: %d payload objects, %d subscribers", topic, len(payload_objects), len(targets))

        for subscription in targets:
            subscription._deliver(InboundMessage(topic, payload_objects))

    def subscribe(self, topic: str) -> Subscription:
        if self._closed:
            raise SubscriptionError(f"transport is closed, cannot subscribe to {topic}")

        subscription = Subscription(self, topic)
        with self._lock:
            self._subscriptions.setdefault(topic, []).append(subscription)

        log.debug("subscribe to %s", topic)
        return subscription

    def subscribers(self, topic: str) -> int:
        """Return the number of open subscriptions to *topic*."""
        with self._lock:
            return len(self._subscriptions.get(topic, ()))

    def _forget(self, subscription: Subscription) -> None:
        with self._lock:
            subscriptions = self._subscriptions.get(subscription.topic)
            if subscriptions is None:
                return
            try:
                subscriptions.remove(subscription)
            except ValueError:
                pass
            if not subscriptions:
                del self._subscriptions[subscription.topic]

    def close(self) -> None:
        self._closed = True

        with self._lock:
            subscriptions = [s for group in self._subscriptions.values() for s in group]
            self._subscriptions.clear()

        for subscription in subscriptions:
            subscription._end()
