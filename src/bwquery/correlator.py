""" Request/response correlation. A :class:`Correlator` owns exactly one
    correlation token and one subscription for the lifetime of a single
    request; fragments on the subscription that answer other requests are
    ignored. Two modes are implemented:

    * :class:`OneShot` publishes a query and blocks until the first inbound
      message carrying a fragment for its token has been handled.
    * :class:`Streaming` publishes a subscribe request and hands every
      matching timeseries fragment to a handler until the stream ends or
      the caller detaches.
"""

import logging
import random as randommodule
import threading

from .protocol.classify import ALL_KINDS, MALFORMED, classify
from .protocol.errors import RemoteError
from .protocol.message import FragmentKind, KeyValueQuery, new_token
from .transport.base import ResponseTimeout, StreamClosed

log = logging.getLogger(__name__)

ONESHOT = 'one-shot'
STREAMING = 'streaming'


class Correlator:
    """ Base class for both request modes. The *random* source is used to
        pick the correlation token; if it is not specified a fresh
        :class:`random.Random` instance is used.

        :ivar token: The correlation token for this request.
        :ivar subscription: The live subscription, once opened.
        :ivar done: A :class:`threading.Event` set when the request is over.
    """

    mode = None

    def __init__(self, transport, random=None):

        if random is None:
            random = randommodule.Random()

        self.transport = transport
        self.token = new_token(random)
        self.subscription = None
        self.done = threading.Event()


    def __repr__(self):
        return '%s(%08x)' % (self.__class__.__name__, self.token)


    def _open(self, topic):
        """ Subscribe to the response *topic*. This must always happen before
            the request is published, otherwise a fast reply could arrive
            before anyone is listening for it.
        """

        log.debug('%r: subscribe to %s', self, topic)
        self.subscription = self.transport.subscribe(topic)


    def _publish(self, topic, query):
        request = KeyValueQuery(query, self.token)
        log.debug('%r: publish to %s', self, topic)
        self.transport.publish(topic, (request.to_payload_object(),))


    def release(self):
        """ Release the subscription, if one is open. Safe to call more than
            once.
        """

        subscription = self.subscription

        if subscription is not None:
            subscription.close()


# end of class Correlator



class OneShot(Correlator):
    """ Correlate a single query with its response. Every fragment matched
        to this request, and every decode error the classifier reports, is
        handed to *handler* as a :class:`bwquery.protocol.classify.Outcome`
        as soon as it arrives; with no *handler* they are logged instead.

        The request completes after the first inbound message that carries
        any fragment for this token, of any kind. Fragments for this token
        that arrive in later messages are not observed.
    """

    mode = ONESHOT
    kinds = ALL_KINDS

    # Seconds to wait for the consumer thread once the request is over.
    linger = 1.0

    def __init__(self, transport, random=None, handler=None):

        Correlator.__init__(self, transport, random)

        self.handler = handler
        self.results = list()
        self.errors = list()
        self.remote = None
        self.failure = None
        self.abandoned = threading.Event()


    def run(self, request_topic, response_topic, query, timeout=None):
        """ Publish *query* on *request_topic* and wait up to *timeout*
            seconds for the response on *response_topic*. If *timeout* is
            None the wait ends only when a response arrives or the stream
            closes.

            Returns the list of decoded results. Raises
            :class:`bwquery.protocol.errors.RemoteError` if the archiver
            answered with an error,
            :class:`bwquery.protocol.errors.DecodeError` if every fragment
            for this request was malformed,
            :class:`bwquery.transport.base.StreamClosed` if the stream ended
            first, and :class:`bwquery.transport.base.ResponseTimeout` if
            the timeout expired first.
        """

        self._open(response_topic)
        thread = None

        try:
            thread = threading.Thread(target=self._consume, daemon=True)
            thread.start()

            self._publish(request_topic, query)

            if not self.done.wait(timeout):
                self.abandoned.set()
                raise ResponseTimeout('%r: no response within %.2f sec' % (self, timeout))
        finally:
            self.release()

            # The consumer may be in the middle of a handler call; nothing
            # further is surfaced once the request is abandoned.

            if thread is not None:
                thread.join(self.linger)

        if self.failure is not None:
            raise self.failure

        if self.remote is not None:
            raise RemoteError(self.remote)

        if not self.results and self.errors:
            raise self.errors[0]

        return self.results


    def _consume(self):
        """ The 'main' method for the background thread: read messages until
            one answers this request, or the stream ends. Any exception is
            handed back to the thread blocked in :func:`run`.
        """

        try:
            for message in self.subscription:
                if self._process(message):
                    return
        except Exception as e:
            self.failure = e
        else:
            if not self.done.is_set():
                self.failure = StreamClosed('%r: stream closed before response' % (self))
        finally:
            self.done.set()


    def _process(self, message):
        """ Classify one inbound *message*, surfacing everything relevant.
            Returns True if the message answered this request.
        """

        matched = False

        for outcome in classify(message, self.token, self.kinds):
            if self.abandoned.is_set():
                return True

            if outcome.matched:
                matched = True
                if outcome.kind is FragmentKind.ERROR:
                    if self.remote is None:
                        self.remote = outcome.payload
                else:
                    self.results.append(outcome.payload)
                self._surface(outcome)

            elif outcome.status == MALFORMED:
                # An undecodable fragment only counts toward completion if
                # its token could be read and is ours.
                if outcome.mine:
                    matched = True
                    self.errors.append(outcome.error)
                self._surface(outcome)

        return matched


    def _surface(self, outcome):

        if self.handler is not None:
            self.handler(outcome)
        elif outcome.matched:
            log.info('%s', outcome.payload.dump())
        else:
            log.warning('%r: %s', self, outcome.error)


# end of class OneShot



class Streaming(Correlator):
    """ Correlate a subscribe request with the unbounded stream of
        timeseries fragments that follows it. Other fragment kinds are
        ignored.

        The *cancel* event, if specified, is the caller's handle for
        detaching from another thread; :func:`detach` sets it as well.
    """

    mode = STREAMING
    kinds = (FragmentKind.TIMESERIES,)

    # How often, in seconds, a blocked reader checks for cancellation.
    interval = 0.25

    def __init__(self, transport, random=None, cancel=None):

        Correlator.__init__(self, transport, random)

        if cancel is None:
            cancel = threading.Event()

        self.cancel = cancel


    def detach(self):
        """ Stop invoking the handler and release the subscription. Any
            fragments already queued are discarded.
        """

        self.cancel.set()
        self.release()


    def run(self, request_topic, response_topic, query, handler):
        """ Publish the subscribe *query* on *request_topic*, then invoke
            *handler* with each matching
            :class:`bwquery.protocol.message.TimeseriesResult` that arrives
            on *response_topic*. The handler runs synchronously; the next
            message is not read until it returns.

            Returns when the stream closes or the caller detaches. A
            malformed timeseries fragment for this request is raised as a
            :class:`bwquery.protocol.errors.DecodeError`.
        """

        if self.cancel.is_set():
            return

        self._open(response_topic)

        try:
            self._publish(request_topic, query)

            while not self.cancel.is_set():
                try:
                    message = self.subscription.recv(self.interval)
                except StreamClosed:
                    break

                if message is None:
                    continue

                for outcome in classify(message, self.token, self.kinds):
                    if self.cancel.is_set():
                        break

                    if outcome.matched:
                        handler(outcome.payload)
                    elif outcome.status == MALFORMED:
                        if outcome.mine:
                            raise outcome.error
                        log.warning('%r: skipping fragment: %s', self, outcome.error)
        finally:
            self.release()
            self.done.set()


# end of class Streaming


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
