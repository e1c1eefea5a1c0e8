"""ZeroMQ publish/subscribe transport.

Publishing goes out through a single PUB socket shared by every caller;
each subscription gets its own SUB socket, so that no two requests ever
share an inbound stream. Both sides connect to a :class:`Forwarder`
(see :mod:`bwquery.transport.zmq.broker`), which owns the well-known
addresses.
"""

from __future__ import annotations

import atexit
import logging
import threading
import time
import weakref
from typing import Dict, Optional, Sequence, Tuple

import zmq

from ...protocol.errors import DecodeError
from ...protocol.message import InboundMessage, PayloadObject
from ..base import (
    PublishError,
    StreamClosed,
    Subscription as BaseSubscription,
    SubscriptionError,
    Transport,
    TransportConnectionError,
)
from .framing import from_frames, to_frames

log = logging.getLogger(__name__)

zmq_context = zmq.Context()


def _poll_flush(socket, timeout=0.01):
    """ Poll the socket in an effort to make sure we're fully connected
        before proceeding. This is not deterministic, but is considered a
        PUB/SUB best practice, and reduces the odds of a subscription
        missing the first messages published after it was established.
        The *timeout* specified here is in seconds.
    """

    poller = zmq.Poller()
    poller.register(socket, zmq.POLLIN | zmq.POLLOUT)
    poller.poll(timeout * 1000)


class Subscription(BaseSubscription):
    """SUB socket bound to exactly one topic.

    ZeroMQ sockets are not thread-safe. The socket is only touched while
    holding ``_socket_lock``; :func:`close` from another thread flags the
    subscription, and the thread blocked in :func:`recv` closes the socket
    on its next poll interval.
    """

    interval = 0.1

    def __init__(self, address: str, topic: str):
        super().__init__(topic)
        self.address = address
        self._closed = False
        self._socket_lock = threading.Lock()

        self.socket = zmq_context.socket(zmq.SUB)
        self.socket.setsockopt(zmq.LINGER, 0)
        try:
            self.socket.connect(address)
            self.socket.setsockopt(zmq.SUBSCRIBE, topic.encode())
        except zmq.ZMQError:
            self.socket.close()
            raise

        _poll_flush(self.socket)

    def _close_socket(self) -> None:
        if not self.socket.closed:
            self.socket.close()

    def recv(self, timeout: Optional[float] = None) -> Optional[InboundMessage]:
        if timeout is None:
            deadline = None
        else:
            deadline = time.monotonic() + timeout

        with self._socket_lock:
            while True:
                if self._closed:
                    self._close_socket()
                    raise StreamClosed(f"subscription to {self.topic} is closed")

                wait = self.interval
                if deadline is not None:
                    wait = max(0.0, min(wait, deadline - time.monotonic()))

                try:
                    ready = self.socket.poll(int(wait * 1000), zmq.POLLIN)
                    parts = self.socket.recv_multipart(zmq.NOBLOCK) if ready else None
                except zmq.ZMQError as exc:
                    raise TransportConnectionError(
                        f"subscription to {self.topic} failed: {exc}"
                    ) from exc

                if parts is not None:
                    try:
                        message = from_frames(parts)
                    except DecodeError as exc:
                        log.warning("dropping undecodable message on %s: %s", self.topic, exc)
                        continue

                    # ZeroMQ subscriptions are prefix matches.
                    if message.topic == self.topic:
                        return message
                    continue

                if deadline is not None and time.monotonic() >= deadline:
                    return None

    def close(self) -> None:
        self._closed = True

        # If nobody is blocked in recv() the socket can be closed right away.
        if self._socket_lock.acquire(blocking=False):
            try:
                self._close_socket()
            finally:
                self._socket_lock.release()

    @property
    def closed(self) -> bool:
        return self._closed


class Client(Transport):
    """PUB client plus a factory for SUB subscriptions."""

    def __init__(self, publish_address: str, subscribe_address: str):
        self.publish_address = publish_address
        self.subscribe_address = subscribe_address

        self.socket = zmq_context.socket(zmq.PUB)
        self.socket.setsockopt(zmq.LINGER, 0)
        try:
            self.socket.connect(publish_address)
        except zmq.ZMQError as exc:
            self.socket.close()
            raise TransportConnectionError(
                f"cannot connect to {publish_address}: {exc}"
            ) from exc

        _poll_flush(self.socket)

        # The lock around the ZeroMQ socket is necessary in a multithreaded
        # application; otherwise, if two different threads both invoke
        # send_multipart(), the message parts can and will get mixed together.

        self.socket_lock = threading.Lock()
        self._subscriptions = weakref.WeakSet()

    def publish(self, topic: str, payload_objects: Sequence[PayloadObject]) -> None:
        frames = to_frames(topic, payload_objects)
        log.debug("publish to %s via %s", topic, self.publish_address)

        with self.socket_lock:
            try:
                self.socket.send_multipart(frames)
            except zmq.ZMQError as exc:
                raise PublishError(f"publish to {topic} failed: {exc}") from exc

    def subscribe(self, topic: str) -> Subscription:
        log.debug("subscribe to %s via %s", topic, self.subscribe_address)

        try:
            subscription = Subscription(self.subscribe_address, topic)
        except zmq.ZMQError as exc:
            raise SubscriptionError(f"subscribe to {topic} failed: {exc}") from exc

        self._subscriptions.add(subscription)
        return subscription

    def close(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.close()

        with self.socket_lock:
            if not self.socket.closed:
                self.socket.close()

        # A closed client must not be handed out again by client().

        key = (self.publish_address, self.subscribe_address)
        with _client_lock:
            if _client_cache.get(key) is self:
                del _client_cache[key]


_client_cache: Dict[Tuple[str, str], Client] = {}
_client_lock = threading.Lock()


def client(publish_address: str, subscribe_address: str) -> Client:
    """Factory function for a :class:`Client` instance. Use of this method
    is encouraged to streamline re-use of established connections.
    """

    key = (publish_address, subscribe_address)
    with _client_lock:
        c = _client_cache.get(key)
        if c is None:
            c = Client(publish_address, subscribe_address)
            _client_cache[key] = c
        return c


def _cleanup() -> None:
    _client_cache.clear()
    zmq_context.destroy(linger=0)


atexit.register(_cleanup)
