""" Exceptions describing problems with the content of a response, as
    opposed to problems moving it; see :mod:`bwquery.transport.base` for
    the latter.
"""


class DecodeError(ValueError):
    """ A fragment was present in an inbound message but could not be
        decoded. The *token* is the correlation token read from the
        fragment, if decoding got that far, otherwise None.
    """

    def __init__(self, text, kind=None, token=None):
        ValueError.__init__(self, text)
        self.kind = kind
        self.token = token



class RemoteError(Exception):
    """ The archiver answered a request with an error fragment. This is a
        valid response, not a transport failure; the decoded
        :class:`bwquery.protocol.message.ErrorResult` is available as
        *result*.
    """

    def __init__(self, result):
        Exception.__init__(self, result.message)
        self.result = result


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
