"""
Main routes: hand each request to the dispatcher and stream back whatever
it writes to the connection.
"""
from flask import Blueprint, Response, current_app, request

from ..http import HttpConnection, HttpRequest

main_bp = Blueprint('main', __name__)


def _dispatch():
    server = current_app.extensions['web_video_server']
    http_request = HttpRequest(
        path=request.path,
        query=request.query_string.decode('latin-1'),
        params=request.args.to_dict(),
    )
    connection = HttpConnection(max_pending=server.config.CONNECTION_BUFFER)
    server.handle(http_request, connection)

    head = connection.head
    if head is None:
        # The handler failed before answering
        connection.close()
        return Response(status=500)
    return Response(connection.iter_body(), status=head.status, headers=head.headers,
                    direct_passthrough=True)


@main_bp.route('/')
def list_streams():
    """Discovery page of camera topics"""
    return _dispatch()


@main_bp.route('/stream')
def stream():
    """Continuous encoded stream of a topic"""
    return _dispatch()


@main_bp.route('/stream_viewer')
def stream_viewer():
    """HTML page wrapping a stream"""
    return _dispatch()


@main_bp.route('/snapshot')
def snapshot():
    """Single JPEG of a topic"""
    return _dispatch()
