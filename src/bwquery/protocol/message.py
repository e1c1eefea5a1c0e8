""" Class representations of the messages exchanged with the archiver: the
    outbound :class:`KeyValueQuery`, the inbound :class:`InboundMessage`
    envelope, and one result class per fragment kind.
"""

import enum

from . import codec
from . import ponum
from .errors import DecodeError


token_min = 0
token_max = 0xFFFFFFFF


def new_token(random):
    """ Return a fresh correlation token drawn from the supplied *random*
        source, which is expected to be a :class:`random.Random` instance
        (or anything else offering :func:`getrandbits`).
    """

    return random.getrandbits(32)



def valid_token(token):
    """ Return True if *token* is something that could legitimately appear
        as a correlation token on the wire: an unsigned 32-bit integer.
    """

    if isinstance(token, bool) or not isinstance(token, int):
        return False

    return token_min <= token <= token_max



class PayloadObject:
    """ A single typed payload: *ponum* is the dotted-form type identifier,
        *content* the raw bytes as they were put on the wire.
    """

    def __init__(self, ponum, content):
        self.ponum = str(ponum)
        self.content = bytes(content)


    def __eq__(self, other):
        try:
            return self.ponum == other.ponum and self.content == other.content
        except AttributeError:
            return NotImplemented


    def __repr__(self):
        return 'PayloadObject(%s, %d bytes)' % (self.ponum, len(self.content))


# end of class PayloadObject



class InboundMessage:
    """ An envelope delivered by a subscription. It is read-only input; the
        *topic* is the topic it was published on, and *payload_objects* is
        the sequence of :class:`PayloadObject` instances it carries.
    """

    def __init__(self, topic, payload_objects=()):
        self.topic = topic
        self.payload_objects = tuple(payload_objects)


    def __repr__(self):
        return 'InboundMessage(%r, %r)' % (self.topic, self.payload_objects)


    def get_one(self, ponum):
        """ Return the first payload object of type *ponum*, or None if the
            message does not carry one.
        """

        for po in self.payload_objects:
            if po.ponum == ponum:
                return po

        return None


# end of class InboundMessage



class KeyValueQuery:
    """ The outbound request: a *query* string and the *nonce* that the
        archiver will echo back in every fragment of its response. Instances
        are immutable once constructed.
    """

    __slots__ = ('query', 'nonce')

    def __init__(self, query, nonce):
        if not valid_token(nonce):
            raise ValueError('nonce must be an unsigned 32-bit integer: ' + repr(nonce))

        object.__setattr__(self, 'query', str(query))
        object.__setattr__(self, 'nonce', nonce)


    def __setattr__(self, name, value):
        raise AttributeError('KeyValueQuery is immutable')


    def __repr__(self):
        return 'KeyValueQuery(%r, %08x)' % (self.query, self.nonce)


    def to_payload_object(self):
        body = dict()
        body['Query'] = self.query
        body['Nonce'] = self.nonce

        return PayloadObject(ponum.KEY_VALUE_QUERY, codec.dumps(body))


    @classmethod
    def from_payload_object(cls, po):
        body = codec.loads(po.content)

        try:
            return cls(body['Query'], body['Nonce'])
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError('malformed key/value query: ' + str(e)) from e


# end of class KeyValueQuery



def _field(body, name, expected, kind):
    """ Return the *name* field of the decoded *body*, requiring it to be
        an instance of the *expected* type(s).
    """

    try:
        value = body[name]
    except KeyError:
        raise DecodeError("%s is missing field '%s'" % (kind, name)) from None

    if not isinstance(value, expected):
        raise DecodeError("%s field '%s' has unexpected type %s" % (kind, name, type(value).__name__))

    return value



def _elements(values, expected, name, kind):
    """ Require every element of the *values* list to be an instance of the
        *expected* type(s); booleans never qualify as numbers.
    """

    for value in values:
        if isinstance(value, bool) or not isinstance(value, expected):
            raise DecodeError("%s field '%s' holds unexpected type %s" % (kind, name, type(value).__name__))

    return values



class Result:
    """ Base class for the decoded result fragments. Every fragment carries
        the correlation *token* (the Nonce on the wire) it claims to answer.
    """

    name = 'result'

    def __init__(self, token):
        self.token = token


    def __repr__(self):
        return '%s(%08x)' % (self.__class__.__name__, self.token)


    @classmethod
    def from_body(cls, body):
        """ Build an instance from an already-unpacked msgpack map. The
            caller is expected to have validated the Nonce.
        """

        raise NotImplementedError


    def to_body(self):
        raise NotImplementedError


    def to_payload_object(self):
        return PayloadObject(self.kind.ponum, codec.dumps(self.to_body()))


    def dump(self):
        return repr(self)


# end of class Result



class ErrorResult(Result):
    """ The archiver could not evaluate the query. *message* is the error
        text; *query* echoes the offending query, if the archiver sent it.
    """

    name = 'query error'

    def __init__(self, token, message, query=None):
        Result.__init__(self, token)
        self.message = message
        self.query = query


    @classmethod
    def from_body(cls, body):
        message = _field(body, 'Error', str, cls.name)
        query = body.get('Query')
        return cls(body['Nonce'], message, query)


    def to_body(self):
        body = dict()
        body['Nonce'] = self.token
        body['Error'] = self.message
        if self.query is not None:
            body['Query'] = self.query
        return body


    def dump(self):
        if self.query:
            return "Error: %s (query: %s)" % (self.message, self.query)
        return "Error: " + self.message


# end of class ErrorResult



class MetadataResult(Result):
    """ Metadata for zero or more streams. Each entry in *records* is a
        dictionary with the stream 'UUID', its 'Path', and its 'Metadata'
        key/value pairs, exactly as the archiver sent them.
    """

    name = 'metadata result'

    def __init__(self, token, records=()):
        Result.__init__(self, token)
        self.records = list(records)


    @classmethod
    def from_body(cls, body):
        records = _field(body, 'Data', (list, tuple), cls.name)
        for record in records:
            if not isinstance(record, dict):
                raise DecodeError('%s record has unexpected type %s' % (cls.name, type(record).__name__))

            # Both fields are optional, but when present they must be usable.

            path = record.get('Path')
            if path is not None and not isinstance(path, str):
                raise DecodeError("%s field 'Path' has unexpected type %s" % (cls.name, type(path).__name__))

            metadata = record.get('Metadata')
            if metadata is not None and not isinstance(metadata, dict):
                raise DecodeError("%s field 'Metadata' has unexpected type %s" % (cls.name, type(metadata).__name__))

        return cls(body['Nonce'], records)


    def to_body(self):
        body = dict()
        body['Nonce'] = self.token
        body['Data'] = self.records
        return body


    def dump(self):
        lines = list()
        for record in self.records:
            lines.append('UUID: %s' % (record.get('UUID'),))
            path = record.get('Path')
            if path:
                lines.append('  Path: %s' % (path,))
            metadata = record.get('Metadata') or dict()
            for key in sorted(metadata, key=str):
                lines.append('  %s: %s' % (key, metadata[key]))

        return '\n'.join(lines)


# end of class MetadataResult



class Timeseries:
    """ Readings for a single stream: parallel lists of *times* (UNIX
        nanoseconds) and *values*.
    """

    def __init__(self, uuid, times=(), values=(), path=None):
        self.uuid = uuid
        self.path = path
        self.times = list(times)
        self.values = list(values)

        if len(self.times) != len(self.values):
            raise DecodeError('timeseries %s has %d times but %d values' % (uuid, len(self.times), len(self.values)))


    def __len__(self):
        return len(self.times)


    def __eq__(self, other):
        try:
            return (self.uuid, self.path, self.times, self.values) == (other.uuid, other.path, other.times, other.values)
        except AttributeError:
            return NotImplemented


    def __repr__(self):
        return 'Timeseries(%s, %d readings)' % (self.uuid, len(self))


    @classmethod
    def from_body(cls, body):
        kind = 'timeseries'

        if not isinstance(body, dict):
            raise DecodeError('%s entry has unexpected type %s' % (kind, type(body).__name__))

        uuid = _field(body, 'UUID', str, kind)
        times = _field(body, 'Times', (list, tuple), kind)
        values = _field(body, 'Values', (list, tuple), kind)

        _elements(times, int, 'Times', kind)
        _elements(values, (int, float), 'Values', kind)

        path = body.get('Path')
        if path is not None and not isinstance(path, str):
            raise DecodeError("%s field 'Path' has unexpected type %s" % (kind, type(path).__name__))

        return cls(uuid, times, values, path)


    def to_body(self):
        body = dict()
        body['UUID'] = self.uuid
        if self.path is not None:
            body['Path'] = self.path
        body['Times'] = self.times
        body['Values'] = self.values
        return body


# end of class Timeseries



class TimeseriesResult(Result):
    """ Readings for zero or more streams, as a list of :class:`Timeseries`
        instances in *data*. *stats* holds any statistical summaries the
        archiver included, undecoded.
    """

    name = 'timeseries result'

    def __init__(self, token, data=(), stats=()):
        Result.__init__(self, token)
        self.data = list(data)
        self.stats = list(stats)


    @classmethod
    def from_body(cls, body):
        data = _field(body, 'Data', (list, tuple), cls.name)
        data = [Timeseries.from_body(entry) for entry in data]

        stats = body.get('Stats') or list()
        if not isinstance(stats, (list, tuple)):
            raise DecodeError("%s field 'Stats' has unexpected type %s" % (cls.name, type(stats).__name__))

        return cls(body['Nonce'], data, stats)


    def to_body(self):
        body = dict()
        body['Nonce'] = self.token
        body['Data'] = [series.to_body() for series in self.data]
        if self.stats:
            body['Stats'] = self.stats
        return body


    def dump(self):
        lines = list()
        for series in self.data:
            lines.append('UUID: %s' % (series.uuid,))
            for time, value in zip(series.times, series.values):
                lines.append('  %d %s' % (time, value))

        return '\n'.join(lines)


# end of class TimeseriesResult



class ChangedRange:
    """ A range of time, [*start*, *end*], in which the data for stream
        *uuid* changed as of *generation*.
    """

    def __init__(self, uuid, start, end, generation=None):
        self.uuid = uuid
        self.start = start
        self.end = end
        self.generation = generation


    def __eq__(self, other):
        try:
            return (self.uuid, self.start, self.end, self.generation) == (other.uuid, other.start, other.end, other.generation)
        except AttributeError:
            return NotImplemented


    def __repr__(self):
        return 'ChangedRange(%s, %s, %s)' % (self.uuid, self.start, self.end)


    @classmethod
    def from_body(cls, body):
        kind = 'changed range'

        if not isinstance(body, dict):
            raise DecodeError('%s entry has unexpected type %s' % (kind, type(body).__name__))

        uuid = _field(body, 'UUID', str, kind)
        start = _field(body, 'StartTime', int, kind)
        end = _field(body, 'EndTime', int, kind)
        return cls(uuid, start, end, body.get('Generation'))


    def to_body(self):
        body = dict()
        body['UUID'] = self.uuid
        body['StartTime'] = self.start
        body['EndTime'] = self.end
        if self.generation is not None:
            body['Generation'] = self.generation
        return body


# end of class ChangedRange



class ChangedRangesResult(Result):
    """ The list of :class:`ChangedRange` instances in *ranges* describes
        where data changed between two generations of one or more streams.
    """

    name = 'changed ranges result'

    def __init__(self, token, ranges=()):
        Result.__init__(self, token)
        self.ranges = list(ranges)


    @classmethod
    def from_body(cls, body):
        ranges = _field(body, 'Changed', (list, tuple), cls.name)
        ranges = [ChangedRange.from_body(entry) for entry in ranges]
        return cls(body['Nonce'], ranges)


    def to_body(self):
        body = dict()
        body['Nonce'] = self.token
        body['Changed'] = [changed.to_body() for changed in self.ranges]
        return body


    def dump(self):
        lines = list()
        for changed in self.ranges:
            if changed.generation is None:
                lines.append('UUID: %s %d - %d' % (changed.uuid, changed.start, changed.end))
            else:
                lines.append('UUID: %s generation %s: %d - %d' % (changed.uuid, changed.generation, changed.start, changed.end))

        return '\n'.join(lines)


# end of class ChangedRangesResult



class FragmentKind(enum.Enum):
    """ The closed set of fragment kinds that may appear in a response. The
        value of each member is the payload object number it travels under.
    """

    ERROR = ponum.QUERY_ERROR
    METADATA = ponum.METADATA_RESPONSE
    TIMESERIES = ponum.TIMESERIES_RESPONSE
    CHANGED_RANGES = ponum.CHANGED_RANGES_RESPONSE

    @property
    def ponum(self):
        return self.value

    @property
    def result_class(self):
        return _result_classes[self]


_result_classes = {
    FragmentKind.ERROR: ErrorResult,
    FragmentKind.METADATA: MetadataResult,
    FragmentKind.TIMESERIES: TimeseriesResult,
    FragmentKind.CHANGED_RANGES: ChangedRangesResult,
}

ErrorResult.kind = FragmentKind.ERROR
MetadataResult.kind = FragmentKind.METADATA
TimeseriesResult.kind = FragmentKind.TIMESERIES
ChangedRangesResult.kind = FragmentKind.CHANGED_RANGES


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
