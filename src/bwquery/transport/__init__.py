"""Transport layer implementations."""

from .base import (
    PublishError,
    ResponseTimeout,
    StreamClosed,
    Subscription,
    SubscriptionError,
    Transport,
    TransportConnectionError,
    TransportError,
)

BACKENDS = ("zmq", "memory")


def connect(configuration):
    """Return a :class:`Transport` for the backend named in *configuration*,
    a :class:`bwquery.config.Configuration` instance.
    """

    backend = configuration.transport

    if backend == "zmq":
        from .zmq import client
        return client.client(configuration.publish_address, configuration.subscribe_address)
    elif backend == "memory":
        from .memory import Transport as MemoryTransport
        return MemoryTransport()
    else:
        raise ValueError(f"unknown BWQUERY_TRANSPORT backend: {backend!r}")
