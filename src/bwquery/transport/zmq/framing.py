"""ZMQ multipart framing for published messages.

Publish (PUB/SUB)
    topic, version, body

The body is the msgpack encoding of ``[[ponum, content], ...]``, one pair
per payload object, in order.
"""

from __future__ import annotations

from typing import Sequence, Tuple

from ...protocol import codec
from ...protocol.errors import DecodeError
from ...protocol.message import InboundMessage, PayloadObject


# This is the version of the on-the-wire framing implemented here,
# identified by a single byte.

VERSION = b"a"


def to_frames(topic: str, payload_objects: Sequence[PayloadObject]) -> Tuple[bytes, ...]:
    """Encode a publish for a PUB socket."""

    body = [[po.ponum, po.content] for po in payload_objects]
    return (topic.encode(), VERSION, codec.dumps(body))


def from_frames(parts: Sequence[bytes]) -> InboundMessage:
    """Decode SUB socket parts into an :class:`InboundMessage`."""

    if len(parts) != 3:
        raise DecodeError(f"expected 3 message parts, received {len(parts)}")

    topic = parts[0].decode()
    their_version = parts[1]
    if their_version != VERSION:
        raise DecodeError(
            f"message is framing version {their_version!r}, recipient expects {VERSION!r}"
        )

    body = codec.loads(parts[2])
    if not isinstance(body, list):
        raise DecodeError("message body is not a list of payload objects")

    payload_objects = []
    for entry in body:
        try:
            ponum, content = entry
        except (TypeError, ValueError):
            raise DecodeError(f"malformed payload object: {entry!r}") from None
        if not isinstance(ponum, str) or not isinstance(content, bytes):
            raise DecodeError(f"malformed payload object: {entry!r}")
        payload_objects.append(PayloadObject(ponum, content))

    return InboundMessage(topic, payload_objects)
