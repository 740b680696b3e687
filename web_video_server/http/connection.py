"""
Connection handle shared between a streaming session and the HTTP engine.

Sessions write the response head and body chunks from their own threads;
the HTTP engine drains the chunks through ``iter_body()`` on the thread
serving the client. Either side may close it.
"""
import logging
import queue
import threading

logger = logging.getLogger('web_video.http')


class ConnectionClosed(Exception):
    """Raised when writing to a connection that has been closed"""


class HttpConnection:
    """Bounded chunk pipe from a writer thread to the client"""

    def __init__(self, max_pending: int = 16, poll_interval: float = 0.1):
        self._chunks = queue.Queue(maxsize=max(1, max_pending))
        self._poll_interval = poll_interval
        self._closed = threading.Event()
        self._close_lock = threading.Lock()
        self._close_callbacks = []
        self._head = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def head(self):
        """The HttpReply written with write_head(), or None"""
        return self._head

    def write_head(self, reply) -> None:
        """Set the status line and headers; only the first call counts"""
        if self.closed:
            raise ConnectionClosed('connection closed before headers were written')
        if self._head is not None:
            logger.debug("Ignoring second response head on connection")
            return
        self._head = reply

    def write(self, data) -> None:
        """Queue a body chunk, blocking while the client is behind"""
        if isinstance(data, str):
            data = data.encode('utf-8')
        if not data:
            return
        while True:
            if self.closed:
                raise ConnectionClosed('write on closed connection')
            try:
                self._chunks.put(bytes(data), timeout=self._poll_interval)
                return
            except queue.Full:
                continue

    def add_close_callback(self, callback) -> None:
        """Register callback(); runs immediately if already closed"""
        with self._close_lock:
            if not self._closed.is_set():
                self._close_callbacks.append(callback)
                return
        callback()

    def close(self) -> None:
        """End the response; queued chunks are still delivered"""
        with self._close_lock:
            if self._closed.is_set():
                return
            self._closed.set()
            callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Connection close callback failed: {e}")

    def read(self, timeout: float = None):
        """Next queued chunk, or None if nothing arrived within timeout"""
        try:
            return self._chunks.get(timeout=timeout)
        except queue.Empty:
            return None

    def iter_body(self):
        """Yield queued chunks until the connection is closed and drained"""
        try:
            while True:
                chunk = self.read(self._poll_interval)
                if chunk is not None:
                    yield chunk
                elif self.closed and self._chunks.empty():
                    return
        finally:
            # Also reached when the client disconnects mid-stream
            self.close()
