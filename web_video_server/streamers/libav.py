"""
Container video streams (WebM/VP8 and fragmented MP4/H.264) built with PyAV.

The muxer writes straight into the HTTP connection, so the containers are
set up for non-seekable live output.
"""
import logging
from fractions import Fraction

import av
import numpy as np
from av.error import FFmpegError
from markupsafe import escape

from ..http import ConnectionClosed
from .base import ImageStreamer

logger = logging.getLogger('web_video.streamers')

# Container options for unseekable output
MUXER_OPTIONS = {
    'webm': {'live': '1', 'flush_packets': '1'},
    'mp4': {'movflags': 'frag_keyframe+empty_moov+default_base_moof', 'flush_packets': '1'},
}

# Low-latency encoder settings per codec
CODEC_OPTIONS = {
    'libvpx': {'deadline': 'realtime', 'cpu-used': '8', 'lag-in-frames': '0'},
    'libx264': {'preset': 'ultrafast', 'tune': 'zerolatency'},
}


class _ConnectionSink:
    """Minimal write-only file object handed to the muxer"""

    def __init__(self, connection):
        self.connection = connection

    def write(self, data) -> int:
        self.connection.write(bytes(data))
        return len(data)

    def flush(self):
        pass


class LibavStreamer(ImageStreamer):
    """Encodes frames with an FFmpeg codec and muxes them into the response"""

    def __init__(self, request, connection, bus, format_name: str, codec_name: str,
                 content_type: str, **kwargs):
        super().__init__(request, connection, bus, **kwargs)
        self.format_name = format_name
        self.codec_name = codec_name
        self.content_type = content_type
        self.bitrate = request.get_int_param('bitrate', 100000)
        self.qmin = request.get_int_param('qmin', 10)
        self.qmax = request.get_int_param('qmax', 42)
        self.gop = request.get_int_param('gop', 250)

        self._container = None
        self._stream = None
        self._first_stamp = None
        self._last_pts = -1
        self._last_time_base = None

    def _open(self, width: int, height: int):
        self._container = av.open(
            _ConnectionSink(self.connection), mode='w', format=self.format_name,
            options=MUXER_OPTIONS.get(self.format_name, {}),
        )
        options = dict(CODEC_OPTIONS.get(self.codec_name, {}))
        options.update(qmin=str(self.qmin), qmax=str(self.qmax))
        stream = self._container.add_stream(self.codec_name, rate=30, options=options)
        stream.width = width
        stream.height = height
        stream.pix_fmt = 'yuv420p'
        stream.bit_rate = self.bitrate
        stream.codec_context.gop_size = self.gop
        stream.time_base = Fraction(1, 1000)
        stream.codec_context.time_base = stream.time_base
        self._stream = stream
        logger.info(f"Opened {self.codec_name}/{self.format_name} encoder for {self.topic} "
                    f"({width}x{height}, {self.bitrate} bps)")

    def prepare_image(self, image):
        image = super().prepare_image(image)
        # yuv420p needs even dimensions
        height, width = image.shape[:2]
        return np.ascontiguousarray(image[:height - height % 2, :width - width % 2])

    def send_image(self, image, stamp: float):
        if self._container is None:
            height, width = image.shape[:2]
            self._open(width, height)
            self._first_stamp = stamp
        elif image.shape[:2] != (self._stream.height, self._stream.width):
            logger.debug(f"Frame size changed on {self.topic}, dropping frame")
            return

        # The encoder may settle on its own time base once opened
        time_base = self._stream.codec_context.time_base or self._stream.time_base
        if self._last_time_base is not None and time_base != self._last_time_base:
            self._last_pts = round(self._last_pts * self._last_time_base / time_base)
        self._last_time_base = time_base
        pts = round((stamp - self._first_stamp) / time_base)
        if pts <= self._last_pts:
            logger.debug(f"Frame on {self.topic} too close to the previous one, dropping")
            with self._frames_ready:
                self.frames_dropped += 1
            return

        frame = av.VideoFrame.from_ndarray(image, format='bgr24')
        frame.pts = self._last_pts = pts
        frame.time_base = time_base
        for packet in self._stream.encode(frame):
            self._container.mux(packet)

    def finish(self):
        if self._container is None:
            return
        try:
            if not self.connection.closed:
                for packet in self._stream.encode(None):
                    self._container.mux(packet)
        except ConnectionClosed:
            logger.debug(f"Encoder flush for {self.topic} not sent")
        except FFmpegError as e:
            logger.warning(f"Encoder flush for {self.topic} failed: {e}")
        finally:
            try:
                self._container.close()
            except (FFmpegError, ConnectionClosed) as e:
                logger.debug(f"Closing container for {self.topic}: {e}")
            self._container = None


def create_video_viewer(request) -> str:
    """<video> element pointing at the stream with the same query"""
    width = request.get_param('width')
    height = request.get_param('height')
    size = ''
    if width:
        size += f' width="{escape(width)}"'
    if height:
        size += f' height="{escape(height)}"'
    return f'<video src="/stream?{escape(request.query)}" autoplay="true" preload="none"{size}></video>'
