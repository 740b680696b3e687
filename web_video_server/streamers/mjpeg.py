"""
Motion-JPEG over multipart/x-mixed-replace.
"""
import logging

import cv2
from markupsafe import escape

from ..http import ConnectionClosed
from .base import ImageStreamer

logger = logging.getLogger('web_video.streamers')

BOUNDARY = 'boundarydonotcross'


def encode_jpeg(image, quality: int) -> bytes:
    ok, buffer = cv2.imencode('.jpg', image, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise ValueError('JPEG encoding failed')
    return buffer.tobytes()


class MjpegStreamer(ImageStreamer):
    """Sends every frame as one JPEG part of a multipart response"""

    content_type = f'multipart/x-mixed-replace;boundary={BOUNDARY}'

    def __init__(self, request, connection, bus, **kwargs):
        super().__init__(request, connection, bus, **kwargs)
        self.quality = request.get_int_param('quality', 95)

    def send_image(self, image, stamp: float):
        jpeg = encode_jpeg(image, self.quality)
        part_header = (
            f'--{BOUNDARY}\r\n'
            'Content-type: image/jpeg\r\n'
            f'Content-Length: {len(jpeg)}\r\n'
            f'X-Timestamp: {stamp:.6f}\r\n'
            '\r\n'
        ).encode('ascii')
        # One write per part so a part is never interleaved or split
        self.connection.write(part_header + jpeg + b'\r\n')

    def finish(self):
        if self.connection.closed:
            return
        try:
            self.connection.write(f'--{BOUNDARY}--\r\n')
        except ConnectionClosed:
            logger.debug(f"Closing boundary for {self.topic} not sent")


def create_mjpeg_viewer(request) -> str:
    """<img> pointing at the stream with the same query"""
    return f'<img src="/stream?{escape(request.query)}"></img>'
