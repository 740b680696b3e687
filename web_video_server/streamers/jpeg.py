"""
Single-frame JPEG snapshot.
"""
import logging

from .base import ImageStreamer
from .mjpeg import encode_jpeg

logger = logging.getLogger('web_video.streamers')


class JpegSnapshotStreamer(ImageStreamer):
    """Answers with the first frame received, then goes inactive"""

    content_type = 'image/jpeg'

    def __init__(self, request, connection, bus, **kwargs):
        super().__init__(request, connection, bus, **kwargs)
        self.quality = request.get_int_param('quality', 95)

    def send_image(self, image, stamp: float):
        self.connection.write(encode_jpeg(image, self.quality))
        logger.info(f"Snapshot of {self.topic} delivered")
        self._mark_inactive()
        self.connection.close()
