from . import errors
from . import ponum
from . import codec
from . import message
from . import classify

from .errors import DecodeError, RemoteError
from .message import (
    ChangedRange,
    ChangedRangesResult,
    ErrorResult,
    FragmentKind,
    InboundMessage,
    KeyValueQuery,
    MetadataResult,
    PayloadObject,
    Timeseries,
    TimeseriesResult,
)


"""
bwquery Protocol Layer
======================

This package defines what is said to the archiver and what it says back,
independent of how the bytes are moved. It MUST NOT depend on any transport
implementation.

---------------------------------------------------------------------

Layer Overview
--------------

Session (session.py)
    Binds a transport and an identity to the archiver's topics
    - query()
    - subscribe_data()

    │
    ▼
Correlator (correlator.py)
    Owns one token and one subscription per request
    - OneShot: first matching message completes the request
    - Streaming: every matching timeseries goes to a handler

    │
    ▼
Fragment Classifier (classify.py)
    Per kind: absent, foreign, matched, or malformed

    │
    ▼
Message Model (message.py)
    - KeyValueQuery (outbound)
    - InboundMessage, PayloadObject (inbound envelope)
    - ErrorResult, MetadataResult, TimeseriesResult, ChangedRangesResult

    │
    ▼
Codec (codec.py)
    msgpack bodies, exactly as the archiver encodes them

---------------------------------------------------------------------
"""


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
