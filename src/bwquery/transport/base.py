"""Transport interface.

This is the (small) contract that transport implementations should follow.
It lives outside :mod:`bwquery.protocol` so the protocol remains
transport-agnostic. A transport hands out one :class:`Subscription` per
call to :func:`Transport.subscribe`; subscriptions are never shared.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, Optional, Sequence

from ..protocol.message import InboundMessage, PayloadObject


# Transport agnostic exceptions

class TransportError(Exception):
    """Base class for all transport-layer errors."""


class TransportConnectionError(TransportError):
    """The transport could not establish or maintain a connection."""


class PublishError(TransportError):
    """A message could not be published."""


class SubscriptionError(TransportError):
    """A subscription could not be established."""


class StreamClosed(Exception):
    """The inbound stream ended before the expected response arrived."""


class ResponseTimeout(StreamClosed):
    """No response arrived within the allotted time."""


class Subscription(ABC):
    """A live stream of :class:`InboundMessage` instances for one topic.

    Iterating over a subscription yields messages in delivery order until
    the stream is closed, at which point iteration stops. Closing is
    idempotent and may be requested from any thread.
    """

    def __init__(self, topic: str):
        self.topic = topic

    @abstractmethod
    def recv(self, timeout: Optional[float] = None) -> Optional[InboundMessage]:
        """Return the next message, or None if *timeout* seconds elapse.

        Raises :class:`StreamClosed` once the stream has ended.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the subscription."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        """Whether the stream has ended."""

    def __iter__(self) -> Iterator[InboundMessage]:
        while True:
            try:
                message = self.recv()
            except StreamClosed:
                return
            if message is not None:
                yield message

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class Transport(ABC):
    """Minimal contract for a publish/subscribe transport."""

    @abstractmethod
    def publish(self, topic: str, payload_objects: Sequence[PayloadObject]) -> None:
        """Publish one message carrying *payload_objects* on *topic*."""

    @abstractmethod
    def subscribe(self, topic: str) -> Subscription:
        """Open a new subscription to *topic*."""

    @abstractmethod
    def close(self) -> None:
        """Tear down the transport and any subscriptions it handed out."""
