import random
import threading

import pytest

import bwquery
from bwquery.protocol import ponum
from bwquery.protocol.message import KeyValueQuery
from bwquery.transport import memory


# A verifying key is base64, with a trailing '=' that is not part of the
# topic names derived from it.

VK = 'MT3dKUYB8cnIfsbnPrrgy8Cb_8whVKM-Gtg2qd79Xco='
ARCHIVER = 'test.ns'


class FakeArchiver:
    """ A scripted stand-in for the archiver service. It listens on both
        request slots; every request it receives is decoded, recorded, and
        handed to *responder*, which is expected to publish whatever the
        test needs published in response.
    """

    def __init__(self, transport, session):

        self.transport = transport
        self.session = session
        self.requests = list()
        self.responder = None
        self.received = threading.Event()

        self.threads = list()
        for topic in (session.query_topic, session.subscribe_topic):
            subscription = transport.subscribe(topic)
            thread = threading.Thread(target=self.run, args=(subscription,))
            thread.daemon = True
            thread.start()
            self.threads.append(thread)


    def run(self, subscription):

        for message in subscription:
            po = message.get_one(ponum.KEY_VALUE_QUERY)
            request = KeyValueQuery.from_payload_object(po)
            self.requests.append((message.topic, request))
            self.received.set()

            if self.responder is not None:
                self.responder(message.topic, request)


    def send(self, topic, *results):
        """ Publish one message on *topic* carrying one payload object per
            result.
        """

        payload_objects = [result.to_payload_object() for result in results]
        self.transport.publish(topic, payload_objects)


    @property
    def queries(self):
        return self.session.signal_topic('queries')


    @property
    def all(self):
        return self.session.signal_topic('all')


# end of class FakeArchiver



@pytest.fixture
def transport():

    bus = memory.Transport()
    yield bus
    bus.close()


@pytest.fixture
def session(transport):

    return bwquery.Session(transport, VK, ARCHIVER, random=random.Random(1234), timeout=2)


@pytest.fixture
def archiver(transport, session):

    return FakeArchiver(transport, session)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
