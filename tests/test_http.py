"""Tests for the request, reply and connection primitives."""

import threading

import pytest

from web_video_server.http import ConnectionClosed, HttpConnection, HttpReply, HttpRequest, stock_reply

from tests.conftest import read_body, wait_for


# =============================================================================
# HttpRequest
# =============================================================================

def test_request_from_uri_keeps_first_value():
    request = HttpRequest.from_uri('/stream?topic=/cam1/image_raw&type=vp8&type=h264')

    assert request.path == '/stream'
    assert request.get_param('topic') == '/cam1/image_raw'
    assert request.get_param('type') == 'vp8'
    assert request.get_param('quality', '95') == '95'
    assert request.uri == '/stream?topic=/cam1/image_raw&type=vp8&type=h264'


def test_request_int_params():
    request = HttpRequest.from_uri('/stream?width=320&height=&quality=abc')

    assert request.get_int_param('width', -1) == 320
    assert request.get_int_param('height', -1) == -1
    with pytest.raises(ValueError):
        request.get_int_param('quality', 95)


def test_request_bool_params():
    request = HttpRequest.from_uri('/stream?invert&flip=false')

    assert request.get_bool_param('invert')
    assert not request.get_bool_param('flip')
    assert not request.get_bool_param('missing')


# =============================================================================
# HttpReply
# =============================================================================

def test_reply_builder_collects_headers():
    connection = HttpConnection()
    HttpReply(200).header('Server', 'web_video_server').header('Content-type', 'text/html').write(connection)

    assert connection.head.status == 200
    assert connection.head.get_header('content-type') == 'text/html'


def test_stock_reply_writes_full_response_and_closes():
    connection = HttpConnection()

    stock_reply(connection, 404)

    assert connection.head.status == 404
    assert connection.closed
    assert b'404 Not Found' in read_body(connection)


# =============================================================================
# HttpConnection
# =============================================================================

def test_chunks_are_read_in_order():
    connection = HttpConnection()
    connection.write(b'one')
    connection.write('two')
    connection.close()

    assert read_body(connection) == b'onetwo'


def test_write_after_close_raises():
    connection = HttpConnection()
    connection.close()

    with pytest.raises(ConnectionClosed):
        connection.write(b'late')
    with pytest.raises(ConnectionClosed):
        HttpReply(200).write(connection)


def test_close_callbacks_run_once():
    connection = HttpConnection()
    calls = []
    connection.add_close_callback(lambda: calls.append('a'))

    connection.close()
    connection.close()
    connection.add_close_callback(lambda: calls.append('b'))

    assert calls == ['a', 'b']


def test_body_iterator_drains_before_stopping():
    connection = HttpConnection(poll_interval=0.01)
    connection.write(b'part1')
    connection.write(b'part2')
    connection.close()

    assert list(connection.iter_body()) == [b'part1', b'part2']


def test_closing_body_iterator_closes_connection():
    connection = HttpConnection(poll_interval=0.01)
    connection.write(b'frame')
    body = connection.iter_body()

    assert next(body) == b'frame'
    body.close()

    assert connection.closed


def test_full_connection_blocks_writer_until_closed():
    connection = HttpConnection(max_pending=1, poll_interval=0.01)
    connection.write(b'fills the buffer')
    outcome = []

    def writer():
        try:
            connection.write(b'blocked')
        except ConnectionClosed:
            outcome.append('closed')

    thread = threading.Thread(target=writer)
    thread.start()
    assert not wait_for(lambda: outcome, timeout=0.2)

    connection.close()
    thread.join(timeout=1)

    assert outcome == ['closed']
