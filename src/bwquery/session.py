""" The :class:`Session` is the principal entry point: it binds a transport
    and the caller's verifying key to the topics of one archiver, and
    exposes one-shot queries and streaming data subscriptions.
"""

import random as randommodule

from . import config
from . import transport as transportmodule
from .correlator import OneShot, Streaming


service_suffix = '/s.giles/_/i.archiver'

# Marker for 'use the session default'; None means wait indefinitely.
default = object()


class Session:
    """ A *transport* is any :class:`bwquery.transport.base.Transport`
        instance; it is shared, read-only, by every request issued through
        this session. The *vk* is the caller's verifying key, as returned
        when the caller's entity was loaded; *archiver* is the base URI of
        the archiver service.

        The *random* source is used to pick correlation tokens; a private
        :class:`random.Random` instance is created if none is specified.
        The *timeout* is the default number of seconds a :func:`query` will
        wait for a response; None waits indefinitely.

        :ivar uri: The base URI for all of the archiver's topics.
    """

    def __init__(self, transport, vk, archiver, random=None, timeout=None):

        if not vk:
            raise ValueError('a verifying key is required')

        if random is None:
            random = randommodule.Random()

        self.transport = transport
        self.vk = vk
        self.uri = archiver.rstrip('/') + service_suffix
        self.random = random
        self.timeout = timeout


    def __repr__(self):
        return 'Session(%r)' % (self.uri)


    def signal_topic(self, suffix):
        """ Return the inbound topic for this caller; *suffix* is 'queries'
            for one-shot responses, 'all' for subscription data. The trailing
            character of the verifying key is not part of the topic.
        """

        return self.uri + '/signal/%s,%s' % (self.vk[:-1], suffix)


    @property
    def query_topic(self):
        return self.uri + '/slot/query'


    @property
    def subscribe_topic(self):
        return self.uri + '/slot/subscribe'


    def query(self, query, handler=None, timeout=default):
        """ Evaluate *query* and return the list of decoded results. The
            *handler*, if specified, is invoked with every
            :class:`bwquery.protocol.classify.Outcome` relevant to this
            request as it arrives, including decode errors; see
            :class:`bwquery.correlator.OneShot` for the details and the
            exceptions raised. The *timeout* defaults to the session's;
            None waits indefinitely.

            An empty query is a no-op and returns an empty list.
        """

        if not query:
            return list()

        if timeout is default:
            timeout = self.timeout

        correlator = OneShot(self.transport, self.random, handler)
        return correlator.run(self.query_topic, self.signal_topic('queries'), query, timeout)


    def subscribe_data(self, query, handler, cancel=None):
        """ Subscribe to the data selected by *query*, invoking *handler*
            with each :class:`bwquery.protocol.message.TimeseriesResult` as
            it arrives. This call blocks until the stream closes or the
            *cancel* event (a :class:`threading.Event`) is set.
        """

        if not callable(handler):
            raise TypeError('handler must be callable')

        correlator = Streaming(self.transport, self.random, cancel)
        correlator.run(self.subscribe_topic, self.signal_topic('all'), query, handler)


# end of class Session



def connect(vk, archiver=None, transport=None, random=None):
    """ Factory function for a :class:`Session` instance. Anything not
        specified is filled in from :func:`bwquery.config.get`, including a
        transport for the configured backend.
    """

    configuration = config.get()

    if archiver is None:
        archiver = configuration.archiver

    if transport is None:
        transport = transportmodule.connect(configuration)

    return Session(transport, vk, archiver, random, configuration.timeout)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
