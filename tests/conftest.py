"""Shared pytest configuration and fixtures for the web video server tests."""

import sys
import threading
import time
from pathlib import Path

import cv2
import numpy as np
import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from web_video_server import create_app
from web_video_server.config import Config
from web_video_server.models.topics import Frame, TopicRecord, IMAGE_TYPE, CAMERA_INFO_TYPE


# =============================================================================
# Fakes
# =============================================================================

class TestConfig(Config):
    """Configuration used by the test suite"""
    __test__ = False
    TESTING = True
    SERVER_THREADS = 4
    SESSION_QUEUE_SIZE = 2
    CONNECTION_BUFFER = 16


class FakeSubscription:
    """In-memory subscription with the same surface as the MQTT one"""

    def __init__(self, bus, topic, on_frame, on_end):
        self.bus = bus
        self.topic = topic
        self.on_frame = on_frame
        self.on_end = on_end
        self.active = True

    def unsubscribe(self):
        if self.active:
            self.active = False
            self.bus.unsubscribed.append(self.topic)

    def end(self):
        if self.active:
            self.active = False
            if self.on_end is not None:
                self.on_end()


class FakeBus:
    """Synchronous bus: publish() calls subscribers on the caller's thread"""

    def __init__(self, topics=()):
        self.topics = list(topics)
        self.subscriptions = []
        self.unsubscribed = []
        self._lock = threading.Lock()

    def list_topics(self):
        return [TopicRecord(name, datatype) for name, datatype in self.topics]

    def subscribe(self, topic, on_frame, on_end=None):
        subscription = FakeSubscription(self, topic, on_frame, on_end)
        with self._lock:
            self.subscriptions.append(subscription)
        return subscription

    def active_subscriptions(self, topic=None):
        with self._lock:
            return [s for s in self.subscriptions
                    if s.active and (topic is None or s.topic == topic)]

    def publish(self, topic, data):
        frame = Frame(topic=topic, data=data, stamp=time.time())
        for subscription in self.active_subscriptions(topic):
            subscription.on_frame(frame)


def wait_for(predicate, timeout=2.0, interval=0.01):
    """Poll predicate until it is true or timeout expires"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def read_body(connection, timeout=2.0):
    """Collect chunks until the connection is closed and drained"""
    chunks = []
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        chunk = connection.read(0.05)
        if chunk is not None:
            chunks.append(chunk)
        elif connection.closed:
            break
    return b''.join(chunks)


# =============================================================================
# Shared Fixtures
# =============================================================================

CAMERA_TOPICS = [
    ('/cam1/image_raw', IMAGE_TYPE),
    ('/cam2/image_raw', IMAGE_TYPE),
    ('/spare/image_raw', IMAGE_TYPE),
    ('/cam1/camera_info', CAMERA_INFO_TYPE),
    ('/cam2/camera_info', CAMERA_INFO_TYPE),
]


@pytest.fixture
def bus():
    return FakeBus(CAMERA_TOPICS)


@pytest.fixture
def jpeg_frame() -> bytes:
    """A 64x48 color JPEG"""
    image = np.zeros((48, 64, 3), dtype=np.uint8)
    image[:, :32] = (0, 0, 255)
    ok, buffer = cv2.imencode('.jpg', image)
    assert ok
    return buffer.tobytes()


@pytest.fixture
def server(bus):
    from web_video_server.server import WebVideoServer
    server = WebVideoServer(bus, config=TestConfig)
    yield server
    server.stop()


@pytest.fixture
def app(bus):
    app = create_app(TestConfig, bus=bus)
    yield app
    app.extensions['web_video_server'].stop()


@pytest.fixture
def client(app):
    return app.test_client()
