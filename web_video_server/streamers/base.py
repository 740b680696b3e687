"""
Base streaming session: one bus topic delivered to one HTTP connection.

The bus callback only queues the frame. A per-session writer thread does
the decoding, encoding and (possibly blocking) connection writes, so a slow
client never stalls bus delivery. When the queue is full the oldest frame
is dropped.
"""
import logging
import threading
from collections import deque

import cv2
import numpy as np

from ..config import Config
from ..http import ConnectionClosed, HttpReply

logger = logging.getLogger('web_video.streamers')

NO_CACHE_HEADERS = (
    ('Cache-Control', 'no-cache, no-store, must-revalidate, pre-check=0, post-check=0, max-age=0'),
    ('Pragma', 'no-cache'),
    ('Expires', '0'),
    ('Max-Age', '0'),
)


def decode_frame(data: bytes):
    """Decode an encoded image payload, or None if it is not an image"""
    buffer = np.frombuffer(data, dtype=np.uint8)
    if buffer.size == 0:
        return None
    try:
        return cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    except cv2.error:
        return None


def to_bgr8(image):
    """Normalize depth/float and grayscale images to 8-bit BGR"""
    if image.dtype != np.uint8:
        image = cv2.normalize(image, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)
    if image.ndim == 2:
        image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    elif image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
    return image


class ImageStreamer:
    """Streaming session bound to a topic, a connection and a subscription"""

    content_type = 'application/octet-stream'

    def __init__(self, request, connection, bus, config=Config):
        self.request = request
        self.connection = connection
        self.bus = bus
        self.config = config
        self.topic = request.get_param('topic', '')
        self.output_width = request.get_int_param('width', -1)
        self.output_height = request.get_int_param('height', -1)
        self.invert = request.get_bool_param('invert')

        self.subscription = None
        self.frames_dropped = 0
        self._frames = deque(maxlen=max(1, config.SESSION_QUEUE_SIZE))
        self._frames_ready = threading.Condition()
        self._inactive = threading.Event()
        self._closed = False
        self._close_lock = threading.Lock()
        self._thread = None

    # =========================================================================
    # Session contract
    # =========================================================================

    def start(self):
        """Write the response head, subscribe and start the writer thread"""
        self.connection.add_close_callback(self._mark_inactive)
        self.write_head()
        self._thread = threading.Thread(
            target=self._writer_loop, name=f'stream{self.topic}', daemon=True
        )
        self._thread.start()
        self.subscription = self.bus.subscribe(self.topic, self._on_frame, self._mark_inactive)
        logger.info(f"Streaming {self.topic} as {type(self).__name__}")

    def is_inactive(self) -> bool:
        """True once the session can no longer deliver; never reverts"""
        return self._inactive.is_set() or self.connection.closed

    def close(self):
        """Release the subscription and connection; idempotent"""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._mark_inactive()
        if self.subscription is not None:
            self.subscription.unsubscribe()
        self.connection.close()

    # =========================================================================
    # Hooks for concrete streamers
    # =========================================================================

    def write_head(self):
        reply = HttpReply(200).header('Connection', 'close').header('Server', self.config.SERVER_HEADER)
        for name, value in NO_CACHE_HEADERS:
            reply.header(name, value)
        reply.header('Content-type', self.content_type)
        reply.write(self.connection)

    def send_image(self, image, stamp: float):
        raise NotImplementedError

    def finish(self):
        """Called once on the writer thread when the session ends"""

    # =========================================================================
    # Frame path
    # =========================================================================

    def _on_frame(self, frame):
        if self._inactive.is_set():
            return
        with self._frames_ready:
            if len(self._frames) == self._frames.maxlen:
                self.frames_dropped += 1
            self._frames.append(frame)
            self._frames_ready.notify()

    def _mark_inactive(self):
        self._inactive.set()
        with self._frames_ready:
            self._frames_ready.notify_all()

    def _next_frame(self):
        with self._frames_ready:
            while not self._frames and not self.is_inactive():
                self._frames_ready.wait(0.5)
            if self.is_inactive():
                return None
            return self._frames.popleft()

    def prepare_image(self, image):
        """Apply invert and output size requested by the client"""
        image = to_bgr8(image)
        if self.invert:
            image = cv2.rotate(image, cv2.ROTATE_180)
        height, width = image.shape[:2]
        target_width, target_height = self.output_width, self.output_height
        if target_width > 0 and target_height <= 0:
            target_height = max(1, round(height * target_width / width))
        elif target_height > 0 and target_width <= 0:
            target_width = max(1, round(width * target_height / height))
        if target_width > 0 and (target_width, target_height) != (width, height):
            image = cv2.resize(image, (target_width, target_height))
        return image

    def _writer_loop(self):
        try:
            self._stream_frames()
        finally:
            self.finish()

    def _stream_frames(self):
        while True:
            frame = self._next_frame()
            if frame is None:
                return
            image = decode_frame(frame.data)
            if image is None:
                logger.warning(f"Skipping undecodable frame on {self.topic}")
                continue
            try:
                self.send_image(self.prepare_image(image), frame.stamp)
            except ConnectionClosed:
                logger.debug(f"Client for {self.topic} went away")
                self._mark_inactive()
            except Exception as e:
                logger.warning(f"Streaming {self.topic} failed: {e}")
                self._mark_inactive()
                self.connection.close()
