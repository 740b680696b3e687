"""Tests for the Flask routes in front of the dispatcher."""

from web_video_server.streamers.mjpeg import BOUNDARY

from tests.conftest import wait_for


def test_index_lists_topics(client):
    response = client.get('/')

    assert response.status_code == 200
    assert response.headers['Server'] == 'web_video_server'
    assert response.headers['Pragma'] == 'no-cache'
    assert b'/stream_viewer?topic=/cam1/image_raw' in response.data
    assert b'/spare/image_raw' not in response.data


def test_pages_render_through_app_templates(app):
    assert app.extensions['web_video_server'].templates is app.jinja_env


def test_unknown_type_returns_404(client, app):
    response = client.get('/stream?type=bogus&topic=/cam1/image_raw')

    assert response.status_code == 404
    assert b'Not Found' in response.data
    assert len(app.extensions['web_video_server'].registry) == 0


def test_viewer_page(client):
    response = client.get('/stream_viewer?topic=/cam1/image_raw')

    assert response.status_code == 200
    assert response.headers['Content-type'].startswith('text/html')
    assert b'<img src="/stream?topic=/cam1/image_raw"></img>' in response.data


def test_stream_response_streams_session_output(client, app, bus, jpeg_frame):
    server = app.extensions['web_video_server']

    response = client.get('/stream?topic=/cam1/image_raw')

    assert response.status_code == 200
    assert response.headers['Content-type'] == f'multipart/x-mixed-replace;boundary={BOUNDARY}'
    assert len(server.registry) == 1

    bus.publish('/cam1/image_raw', jpeg_frame)
    first_part = next(iter(response.response))
    assert first_part.startswith(f'--{BOUNDARY}'.encode())

    # Client going away closes the connection
    response.close()
    session = server.registry.sessions()[0]
    assert wait_for(session.is_inactive)
    assert server.registry.sweep() == [session]


def test_snapshot_route(client, app, bus, jpeg_frame):
    server = app.extensions['web_video_server']

    response = client.get('/snapshot?topic=/cam1/image_raw&type=vp8')

    assert response.status_code == 200
    assert response.headers['Content-type'] == 'image/jpeg'
    assert len(server.registry) == 1

    bus.publish('/cam1/image_raw', jpeg_frame)

    assert response.get_data().startswith(b'\xff\xd8')


def test_handler_failure_returns_500(client, app):
    response = client.get('/stream?topic=/cam1/image_raw&width=wide')

    assert response.status_code == 500
    assert len(app.extensions['web_video_server'].registry) == 0
