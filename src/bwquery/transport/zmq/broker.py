"""ZeroMQ forwarder.

Publishers connect to the XSUB *frontend*, subscribers to the XPUB
*backend*. Messages flow frontend to backend; subscription requests flow
the other way, so that filtering happens as close to the publisher as
possible.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

import zmq

from ..base import TransportConnectionError
from .client import zmq_context

log = logging.getLogger(__name__)


class Forwarder:
    """Relay between publishers and subscribers.

    If an address is not given, the corresponding socket is bound to a
    randomly chosen port on *host*; the actual endpoints are available as
    :attr:`publish_address` and :attr:`subscribe_address` either way.
    """

    def __init__(
        self,
        frontend: Optional[str] = None,
        backend: Optional[str] = None,
        host: str = "tcp://127.0.0.1",
    ):
        self.frontend = zmq_context.socket(zmq.XSUB)
        self.frontend.setsockopt(zmq.LINGER, 0)
        self.backend = zmq_context.socket(zmq.XPUB)
        self.backend.setsockopt(zmq.LINGER, 0)

        try:
            self.publish_address = self._bind(self.frontend, frontend, host)
            self.subscribe_address = self._bind(self.backend, backend, host)
        except zmq.ZMQError as exc:
            self.frontend.close()
            self.backend.close()
            raise TransportConnectionError(f"forwarder cannot bind: {exc}") from exc

        log.debug("forwarding %s -> %s", self.publish_address, self.subscribe_address)

        self.shutdown = False
        self.thread = threading.Thread(target=self.run, daemon=True)
        self.thread.start()

    @staticmethod
    def _bind(socket, address: Optional[str], host: str) -> str:
        if address is None:
            port = socket.bind_to_random_port(host)
            return f"{host}:{port}"

        socket.bind(address)
        return address

    def run(self) -> None:
        poller = zmq.Poller()
        poller.register(self.frontend, zmq.POLLIN)
        poller.register(self.backend, zmq.POLLIN)

        try:
            while not self.shutdown:
                for active, _flag in poller.poll(100):
                    if active == self.frontend:
                        self.backend.send_multipart(self.frontend.recv_multipart())
                    elif active == self.backend:
                        self.frontend.send_multipart(self.backend.recv_multipart())
        finally:
            self.frontend.close()
            self.backend.close()

    def stop(self, timeout: Optional[float] = 1.0) -> None:
        self.shutdown = True
        self.thread.join(timeout)
