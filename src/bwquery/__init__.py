""" Python client for archiver queries carried over publish/subscribe. A
    request is published with a random correlation token; the fragments
    of the response are picked out of the shared inbound stream by that
    token and handed back to the caller.
"""

# Submodules used by multiple other components.

from . import config
from . import protocol
from . import transport

# Primary public-facing interfaces.

from . import correlator
from . import session
connect = session.connect

from .session import Session
from .correlator import OneShot, Streaming

from .protocol.errors import DecodeError, RemoteError
from .transport.base import (
    PublishError,
    ResponseTimeout,
    StreamClosed,
    SubscriptionError,
    TransportConnectionError,
    TransportError,
)

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
