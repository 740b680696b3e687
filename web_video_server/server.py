"""
Request dispatcher for the web video server.

Maps request paths to the discovery page, stream and snapshot sessions and
the viewer page, and keeps every started session in the session registry
until the cleanup sweeper reclaims it.
"""
import logging
import threading

from jinja2 import Environment, PackageLoader, select_autoescape
from markupsafe import Markup

from .config import Config
from .http import HttpReply, stock_reply
from .models.registry import SessionRegistry
from .services.sweeper import CleanupSweeper
from .services.topics import TopicDirectory
from .streamers import JpegSnapshotStreamer, default_codecs

logger = logging.getLogger('web_video.http')

# Used when the dispatcher runs without a Flask app
_templates = Environment(
    loader=PackageLoader('web_video_server', 'templates'),
    autoescape=select_autoescape(['html']),
)

NO_CACHE = 'no-cache, no-store, must-revalidate, pre-check=0, post-check=0, max-age=0'


class WebVideoServer:
    """Turns HTTP requests into registered streaming sessions"""

    def __init__(self, bus, codecs=None, registry=None, config=Config, templates=None):
        self.bus = bus
        self.config = config
        self.codecs = codecs if codecs is not None else default_codecs()
        self.registry = registry if registry is not None else SessionRegistry()
        self.topics = TopicDirectory(bus)
        self.templates = templates if templates is not None else _templates
        self.sweeper = CleanupSweeper(self.registry, config.SWEEP_PERIOD)
        self._dispatch_slots = threading.BoundedSemaphore(max(1, config.SERVER_THREADS))
        self._handlers = {
            '/': self.handle_list_streams,
            '/stream': self.handle_stream,
            '/stream_viewer': self.handle_stream_viewer,
            '/snapshot': self.handle_snapshot,
        }

    def start(self):
        self.sweeper.start()
        logger.info(f"Stream types: {', '.join(self.codecs.types())}")

    def stop(self):
        self.sweeper.stop()
        closed = self.registry.close_all()
        logger.info(f"Closed {closed} active stream(s)")

    # =========================================================================
    # Dispatch
    # =========================================================================

    def handle(self, request, connection):
        """Entry point for every request; never raises"""
        logger.info(f"Handling request: {request.uri}")
        handler = self._handlers.get(request.path)
        try:
            with self._dispatch_slots:
                if handler is None:
                    stock_reply(connection, 404, self.config.SERVER_HEADER)
                else:
                    handler(request, connection)
        except Exception as e:
            logger.warning(f"Error handling request {request.uri}: {e}")

    def _stream_type(self, request):
        return request.get_param('type', self.config.DEFAULT_STREAM_TYPE)

    def _start_session(self, session):
        try:
            session.start()
        except Exception:
            session.close()
            raise
        self.registry.insert(session)
        return session

    # =========================================================================
    # Handlers
    # =========================================================================

    def handle_stream(self, request, connection):
        """Start a codec session; its body is written by the session itself"""
        codec = self.codecs.resolve(self._stream_type(request))
        if codec is None:
            stock_reply(connection, 404, self.config.SERVER_HEADER)
            return None
        session = codec.create_session(request, connection, self.bus, config=self.config)
        return self._start_session(session)

    def handle_snapshot(self, request, connection):
        """Start a one-frame JPEG session; the type parameter is ignored"""
        session = JpegSnapshotStreamer(request, connection, self.bus, config=self.config)
        return self._start_session(session)

    def handle_stream_viewer(self, request, connection):
        """HTML page embedding the codec's viewer element"""
        codec = self.codecs.resolve(self._stream_type(request))
        if codec is None:
            stock_reply(connection, 404, self.config.SERVER_HEADER)
            return
        topic = request.get_param('topic', '')
        page = self.templates.get_template('viewer.html').render(
            topic=topic, viewer=Markup(codec.create_viewer(request))
        )
        self._write_html(connection, page)

    def handle_list_streams(self, request, connection):
        """Discovery page listing image topics per camera"""
        groups = self.topics.list_groups()
        page = self.templates.get_template('index.html').render(groups=groups)
        self._write_html(connection, page, no_cache=True)

    def _write_html(self, connection, page: str, no_cache: bool = False):
        reply = HttpReply(200).header('Connection', 'close').header('Server', self.config.SERVER_HEADER)
        if no_cache:
            reply.header('Cache-Control', NO_CACHE).header('Pragma', 'no-cache')
        reply.header('Content-type', 'text/html;').write(connection)
        connection.write(page)
        connection.close()
