""" Demultiplex an inbound message against a correlation token. Several
    kinds of answer share one physical stream; each kind present in a
    message is decoded on its own and its embedded token compared against
    the token of interest.
"""

from . import codec
from .errors import DecodeError
from .message import FragmentKind, valid_token


ABSENT = 'absent'
FOREIGN = 'foreign'
MATCHED = 'matched'
MALFORMED = 'malformed'

ALL_KINDS = (
    FragmentKind.ERROR,
    FragmentKind.METADATA,
    FragmentKind.TIMESERIES,
    FragmentKind.CHANGED_RANGES,
)


class Outcome:
    """ The result of classifying one :class:`FragmentKind` of one message
        against one token. The *status* is one of:

        * ``ABSENT``: the message carries no fragment of this kind.
        * ``FOREIGN``: the fragment answers somebody else's request.
        * ``MATCHED``: the fragment is ours; *payload* is the decoded result.
        * ``MALFORMED``: the fragment could not be decoded; *error* is the
          :class:`DecodeError`. The *token* is set if the fragment's token
          could still be read, whoever it belongs to.

        The *target* is the token the fragment was classified against.
    """

    __slots__ = ('kind', 'status', 'token', 'payload', 'error', 'target')

    def __init__(self, kind, status, token=None, payload=None, error=None, target=None):
        self.kind = kind
        self.status = status
        self.token = token
        self.payload = payload
        self.error = error
        self.target = target


    def __repr__(self):
        return 'Outcome(%s, %s)' % (self.kind.name, self.status)


    @property
    def found(self):
        """ True if this kind was present in the message at all. """
        return self.status != ABSENT


    @property
    def matched(self):
        return self.status == MATCHED


    @property
    def mine(self):
        """ True if this fragment is known to answer the token it was
            classified against, whether or not it decoded cleanly.
        """

        if self.status == MATCHED:
            return True

        return self.status == MALFORMED and self.token is not None and self.token == self.target


# end of class Outcome



def classify_one(message, token, kind):
    """ Classify a single *kind* of fragment in *message* against *token*,
        returning an :class:`Outcome`.
    """

    po = message.get_one(kind.ponum)

    if po is None:
        return Outcome(kind, ABSENT, target=token)

    try:
        body = codec.loads(po.content)
    except DecodeError as e:
        e.kind = kind
        return Outcome(kind, MALFORMED, error=e, target=token)

    if not isinstance(body, dict):
        error = DecodeError('%s is not a map' % (kind.result_class.name), kind)
        return Outcome(kind, MALFORMED, error=error, target=token)

    their_token = body.get('Nonce')

    if not valid_token(their_token):
        error = DecodeError('%s carries no valid nonce: %r' % (kind.result_class.name, their_token), kind)
        return Outcome(kind, MALFORMED, error=error, target=token)

    # Every present fragment is fully decoded before the tokens are
    # compared; a decode error is reported whoever the fragment answers.

    try:
        payload = kind.result_class.from_body(body)
    except DecodeError as e:
        e.kind = kind
        e.token = their_token
        return Outcome(kind, MALFORMED, their_token, error=e, target=token)

    if their_token != token:
        return Outcome(kind, FOREIGN, their_token, target=token)

    return Outcome(kind, MATCHED, their_token, payload, target=token)



def classify(message, token, kinds=ALL_KINDS):
    """ Classify every requested kind of fragment in *message* against
        *token*. One :class:`Outcome` is returned per requested kind, in the
        order requested, whether or not the kind was present.
    """

    return [classify_one(message, token, kind) for kind in kinds]


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
