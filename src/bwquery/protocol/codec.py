""" Wrapper module around msgpack, providing the equivalent of
    :func:`json.loads` and :func:`json.dumps` for the payload objects
    exchanged with the archiver.
"""

import msgpack

from .errors import DecodeError


def dumps(value):
    """ Return the msgpack encoding of *value* as bytes. Strings are always
        encoded as msgpack str, bytes as msgpack bin.
    """

    return msgpack.packb(value, use_bin_type=True)


def loads(data):
    """ Decode msgpack *data*. Any failure to decode, including trailing
        garbage after the first object, is raised as a
        :class:`bwquery.protocol.errors.DecodeError`.
    """

    try:
        return msgpack.unpackb(data, raw=False, strict_map_key=False)
    except (ValueError, TypeError, msgpack.exceptions.UnpackException) as e:
        raise DecodeError('could not decode msgpack payload: ' + str(e)) from e


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
