import random
import threading
import time

import pytest

import bwquery
from bwquery.correlator import OneShot, Streaming
from bwquery.protocol import classify
from bwquery.protocol import message
from bwquery.protocol import ponum


def series(token, *values):
    times = list(range(len(values)))
    return message.TimeseriesResult(token, [message.Timeseries('abc', times, values)])


def run_oneshot(session, correlator, timeout=2):
    return correlator.run(session.query_topic, session.signal_topic('queries'), 'select data before now', timeout)


def run_streaming(session, correlator, handler):
    return correlator.run(session.subscribe_topic, session.signal_topic('all'), 'select data before now', handler)


def test_token_is_random(transport):

    first = OneShot(transport, random.Random(1))
    second = OneShot(transport, random.Random(1))
    third = OneShot(transport, random.Random(2))

    assert first.token == second.token
    assert first.token != third.token
    assert first.mode == 'one-shot'


def test_oneshot_timeseries(session, archiver, transport):

    def responder(topic, request):
        archiver.send(archiver.queries, series(request.nonce, 1.0, 2.0))

    archiver.responder = responder

    observed = list()
    correlator = OneShot(transport, random.Random(5), observed.append)
    results = run_oneshot(session, correlator)

    assert len(results) == 1
    assert results[0].token == correlator.token
    assert results[0].data[0].values == [1.0, 2.0]

    # The handler sees the payload exactly once.

    assert len(observed) == 1
    assert observed[0].matched
    assert observed[0].payload is results[0]

    # The request carried the correlator's token.

    topic, request = archiver.requests[0]
    assert topic == session.query_topic
    assert request.nonce == correlator.token
    assert request.query == 'select data before now'

    # The subscription is released once the request completes.

    assert correlator.subscription.closed
    assert transport.subscribers(session.signal_topic('queries')) == 0


def test_oneshot_ignores_other_tokens(session, archiver, transport):

    def responder(topic, request):
        other = (request.nonce + 1) & 0xFFFFFFFF
        archiver.send(archiver.queries, series(other, 99.0))
        archiver.send(archiver.queries, message.ErrorResult(other, 'not for you'))
        archiver.send(archiver.queries, message.MetadataResult(request.nonce, [{'UUID': 'abc'}]))

    archiver.responder = responder

    observed = list()
    correlator = OneShot(transport, handler=observed.append)
    results = run_oneshot(session, correlator)

    assert len(results) == 1
    assert isinstance(results[0], message.MetadataResult)
    assert [outcome.kind for outcome in observed] == [message.FragmentKind.METADATA]


def test_oneshot_first_match_wins(session, archiver, transport):
    """ Everything for this token in the first matching message is surfaced;
        later messages for the same token are not.
    """

    def responder(topic, request):
        metadata = message.MetadataResult(request.nonce, [{'UUID': 'abc'}])
        archiver.send(archiver.queries, metadata, series(request.nonce, 1.0))
        archiver.send(archiver.queries, series(request.nonce, 2.0))

    archiver.responder = responder

    correlator = OneShot(transport)
    results = run_oneshot(session, correlator)

    assert len(results) == 2
    assert isinstance(results[0], message.MetadataResult)
    assert isinstance(results[1], message.TimeseriesResult)
    assert results[1].data[0].values == [1.0]


def test_oneshot_remote_error(session, archiver, transport):

    def responder(topic, request):
        archiver.send(archiver.queries, message.ErrorResult(request.nonce, 'bad query', request.query))

    archiver.responder = responder

    observed = list()
    correlator = OneShot(transport, handler=observed.append)

    begin = time.time()

    with pytest.raises(bwquery.RemoteError) as excinfo:
        run_oneshot(session, correlator, timeout=5)

    assert time.time() - begin < 1
    assert excinfo.value.result.message == 'bad query'
    assert excinfo.value.result.token == correlator.token
    assert 'bad query' in str(excinfo.value)

    # The error fragment is surfaced like any other before it is raised.

    assert len(observed) == 1
    assert observed[0].kind == message.FragmentKind.ERROR


def test_oneshot_stream_closed(session, archiver, transport):

    def responder(topic, request):
        transport.close()

    archiver.responder = responder

    correlator = OneShot(transport)

    with pytest.raises(bwquery.StreamClosed) as excinfo:
        run_oneshot(session, correlator, timeout=5)

    assert not isinstance(excinfo.value, bwquery.ResponseTimeout)


def test_oneshot_timeout(session, archiver, transport):

    correlator = OneShot(transport)

    begin = time.time()

    with pytest.raises(bwquery.ResponseTimeout):
        run_oneshot(session, correlator, timeout=0.2)

    elapsed = time.time() - begin
    assert elapsed >= 0.2
    assert elapsed < 2

    assert correlator.subscription.closed
    assert transport.subscribers(session.signal_topic('queries')) == 0

    # The request did go out.

    assert archiver.received.wait(1)


def test_oneshot_decode_error(session, archiver, transport):

    def responder(topic, request):
        body = {'Nonce': request.nonce, 'Data': [{'UUID': 'abc', 'Times': [1], 'Values': []}]}
        po = message.PayloadObject(ponum.TIMESERIES_RESPONSE, bwquery.protocol.codec.dumps(body))
        transport.publish(archiver.queries, [po])

    archiver.responder = responder

    observed = list()
    correlator = OneShot(transport, handler=observed.append)

    # The only fragment for this request was malformed: that's a failure,
    # but it still counts as the response.

    with pytest.raises(bwquery.DecodeError) as excinfo:
        run_oneshot(session, correlator, timeout=5)

    assert excinfo.value.token == correlator.token
    assert len(observed) == 1
    assert observed[0].status == classify.MALFORMED


def test_oneshot_decode_error_is_not_fatal(session, archiver, transport):

    def responder(topic, request):
        garbage = message.PayloadObject(ponum.METADATA_RESPONSE, b'\xc1')
        transport.publish(archiver.queries, [garbage])
        archiver.send(archiver.queries, series(request.nonce, 3.0))

    archiver.responder = responder

    observed = list()
    correlator = OneShot(transport, handler=observed.append)
    results = run_oneshot(session, correlator)

    # The undecodable fragment can't be attributed to anyone; it is still
    # surfaced, but it doesn't complete the request.

    assert len(results) == 1
    assert results[0].data[0].values == [3.0]
    assert [outcome.status for outcome in observed] == [classify.MALFORMED, classify.MATCHED]


def test_oneshot_foreign_decode_error(session, archiver, transport):

    def responder(topic, request):
        body = {'Nonce': request.nonce ^ 1, 'Data': [{'UUID': 'abc', 'Times': ['x'], 'Values': [1.0]}]}
        po = message.PayloadObject(ponum.TIMESERIES_RESPONSE, bwquery.protocol.codec.dumps(body))
        transport.publish(archiver.queries, [po])
        archiver.send(archiver.queries, series(request.nonce, 4.0))

    archiver.responder = responder

    observed = list()
    correlator = OneShot(transport, handler=observed.append)
    results = run_oneshot(session, correlator)

    # The broken answer to somebody else's request is reported, but it
    # neither completes nor fails this one.

    assert len(results) == 1
    assert results[0].data[0].values == [4.0]

    assert [outcome.status for outcome in observed] == [classify.MALFORMED, classify.MATCHED]
    assert observed[0].token == correlator.token ^ 1
    assert not observed[0].mine


def test_oneshot_nothing_surfaced_after_timeout(session, archiver, transport):

    def responder(topic, request):
        metadata = message.MetadataResult(request.nonce, [{'UUID': 'abc'}])
        archiver.send(archiver.queries, metadata, series(request.nonce, 1.0))

    archiver.responder = responder

    observed = list()
    proceed = threading.Event()

    def handler(outcome):
        observed.append(outcome)
        proceed.wait(5)

    correlator = OneShot(transport, handler=handler)
    correlator.linger = 0.1

    with pytest.raises(bwquery.ResponseTimeout):
        run_oneshot(session, correlator, timeout=0.5)

    # The handler was still busy with the first fragment when the timeout
    # expired; the second fragment in the same message is never surfaced.

    proceed.set()
    time.sleep(0.2)
    assert len(observed) == 1
    assert observed[0].kind == message.FragmentKind.METADATA


def test_oneshot_handler_exception(session, archiver, transport):

    def responder(topic, request):
        archiver.send(archiver.queries, series(request.nonce, 1.0))

    archiver.responder = responder

    def handler(outcome):
        raise KeyError('from the handler')

    correlator = OneShot(transport, handler=handler)

    with pytest.raises(KeyError):
        run_oneshot(session, correlator)


def test_oneshot_subscribe_failure(session, transport):

    transport.close()
    correlator = OneShot(transport)

    with pytest.raises(bwquery.SubscriptionError):
        run_oneshot(session, correlator)


def test_streaming_interleaved(session, archiver, transport):

    def responder(topic, request):
        other = (request.nonce ^ 0xFFFF) & 0xFFFFFFFF
        archiver.send(archiver.all, series(request.nonce, 1.0))
        archiver.send(archiver.all, series(other, -1.0))
        archiver.send(archiver.all, series(request.nonce, 2.0))
        archiver.send(archiver.all, message.ErrorResult(request.nonce, 'ignored'))
        archiver.send(archiver.all, series(other, -2.0))
        archiver.send(archiver.all, series(request.nonce, 3.0))
        transport.close()

    archiver.responder = responder

    received = list()
    correlator = Streaming(transport)
    assert correlator.mode == 'streaming'

    run_streaming(session, correlator, received.append)

    assert [result.data[0].values for result in received] == [[1.0], [2.0], [3.0]]
    for result in received:
        assert result.token == correlator.token

    topic, request = archiver.requests[0]
    assert topic == session.subscribe_topic
    assert correlator.done.is_set()


def test_streaming_detach(session, archiver, transport):

    def responder(topic, request):
        for value in (1.0, 2.0, 3.0):
            archiver.send(archiver.all, series(request.nonce, value))

    # Queue all three fragments before the first one is handled.

    release = threading.Event()

    def blocking_responder(topic, request):
        responder(topic, request)
        release.set()

    archiver.responder = blocking_responder

    received = list()
    correlator = Streaming(transport)

    def handler(result):
        release.wait(2)
        received.append(result)
        correlator.detach()

    run_streaming(session, correlator, handler)

    assert len(received) == 1
    assert correlator.cancel.is_set()
    assert correlator.subscription.closed
    assert transport.subscribers(session.signal_topic('all')) == 0


def test_streaming_cancel_from_another_thread(session, archiver, transport):

    cancel = threading.Event()
    correlator = Streaming(transport, cancel=cancel)

    def canceller():
        archiver.received.wait(2)
        cancel.set()

    thread = threading.Thread(target=canceller)
    thread.start()

    begin = time.time()
    run_streaming(session, correlator, lambda result: None)
    elapsed = time.time() - begin

    thread.join()
    assert elapsed < 2
    assert correlator.subscription.closed


def test_streaming_already_cancelled(session, archiver, transport):

    cancel = threading.Event()
    cancel.set()

    correlator = Streaming(transport, cancel=cancel)
    run_streaming(session, correlator, lambda result: None)

    assert correlator.subscription is None
    assert archiver.requests == []


def test_streaming_decode_error(session, archiver, transport):

    def responder(topic, request):
        archiver.send(archiver.all, series(request.nonce, 1.0))

        # Garbage that can't be attributed is skipped...
        garbage = message.PayloadObject(ponum.TIMESERIES_RESPONSE, b'\xc1')
        transport.publish(archiver.all, [garbage])

        # ...but a malformed fragment for this request ends the stream.
        body = {'Nonce': request.nonce, 'Data': 'not a list'}
        po = message.PayloadObject(ponum.TIMESERIES_RESPONSE, bwquery.protocol.codec.dumps(body))
        transport.publish(archiver.all, [po])

        archiver.send(archiver.all, series(request.nonce, 2.0))

    archiver.responder = responder

    received = list()
    correlator = Streaming(transport)

    with pytest.raises(bwquery.DecodeError):
        run_streaming(session, correlator, received.append)

    assert len(received) == 1
    assert correlator.subscription.closed


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
