"""
Streamer strategies and the codec registry that selects them by type.
"""
from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional

from .base import ImageStreamer
from .jpeg import JpegSnapshotStreamer
from .libav import LibavStreamer, create_video_viewer
from .mjpeg import MjpegStreamer, create_mjpeg_viewer


@dataclass(frozen=True)
class CodecDescriptor:
    """One stream type: how to build its session and its viewer markup"""
    type_id: str
    create_session: Callable
    create_viewer: Callable


class CodecRegistry:
    """Stream types by identifier; filled at startup, read-only afterwards"""

    def __init__(self):
        self._codecs = {}

    def register(self, type_id: str, create_session, create_viewer) -> CodecDescriptor:
        descriptor = CodecDescriptor(type_id, create_session, create_viewer)
        self._codecs[type_id] = descriptor
        return descriptor

    def resolve(self, type_id: str) -> Optional[CodecDescriptor]:
        """Exact, case-sensitive lookup"""
        return self._codecs.get(type_id)

    def __contains__(self, type_id):
        return type_id in self._codecs

    def types(self):
        return list(self._codecs)


def default_codecs() -> CodecRegistry:
    """mjpeg, vp8 and h264 streamers"""
    codecs = CodecRegistry()
    codecs.register('mjpeg', MjpegStreamer, create_mjpeg_viewer)
    codecs.register(
        'vp8',
        partial(LibavStreamer, format_name='webm', codec_name='libvpx', content_type='video/webm'),
        create_video_viewer,
    )
    codecs.register(
        'h264',
        partial(LibavStreamer, format_name='mp4', codec_name='libx264', content_type='video/mp4'),
        create_video_viewer,
    )
    return codecs
