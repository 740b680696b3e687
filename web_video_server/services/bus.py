"""
MQTT bus for the web video server.

Camera nodes advertise their topics with retained JSON documents on
``<prefix>/topics<name>`` and publish encoded frames on
``<prefix>/frames<name>``. The bus keeps the advertised topics in the order
they were first seen and fans frames out to subscribers on a small pool of
callback workers.
"""
import json
import logging
import ssl
import threading
import time
import zlib
from concurrent.futures import ThreadPoolExecutor

import paho.mqtt.client as mqtt

from ..config import Config
from ..models.topics import Frame, TopicRecord

logger = logging.getLogger('web_video.mqtt')


class Subscription:
    """Handle for one subscriber's interest in one topic"""

    def __init__(self, bus, topic: str, on_frame, on_end=None):
        self.topic = topic
        self._bus = bus
        self._on_frame = on_frame
        self._on_end = on_end
        self._active = True
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop delivery; safe to call more than once"""
        if self._finish():
            self._bus._remove_subscription(self)

    def deliver(self, frame: Frame) -> None:
        if self._active:
            self._on_frame(frame)

    def end(self) -> None:
        """Terminate from the bus side and notify the subscriber"""
        if self._finish() and self._on_end is not None:
            self._on_end()

    def _finish(self) -> bool:
        with self._lock:
            was_active, self._active = self._active, False
            return was_active


def _create_client(config):
    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=config.MQTT_CLIENT_ID)
    if config.MQTT_USERNAME:
        client.username_pw_set(config.MQTT_USERNAME, config.MQTT_PASSWORD)
    if config.MQTT_USE_TLS:
        # Brokers on camera networks commonly use self-signed certificates
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        client.tls_set_context(ssl_context)
        logger.info("TLS encryption enabled")
    return client


class MqttBus:
    """Topic catalog plus frame subscriptions over one MQTT client"""

    def __init__(self, config=Config, client=None):
        self.config = config
        self.prefix = config.MQTT_TOPIC_PREFIX.rstrip('/')
        self._client = client if client is not None else _create_client(config)
        self._client.on_connect = self._on_connect
        self._client.on_message = self._on_message
        self._client.on_disconnect = self._on_disconnect

        # name -> datatype, in first-advertised order
        self._topics = {}
        self._topics_lock = threading.Lock()

        # name -> [Subscription]
        self._subscriptions = {}
        self._subscriptions_lock = threading.Lock()

        worker_count = max(1, int(config.BUS_THREADS))
        self._workers = [
            ThreadPoolExecutor(max_workers=1, thread_name_prefix=f'bus-callback-{i}')
            for i in range(worker_count)
        ]

    # =========================================================================
    # Topic naming
    # =========================================================================

    @staticmethod
    def _normalize(name: str) -> str:
        return name if name.startswith('/') else '/' + name

    def announce_topic(self, name: str) -> str:
        return f"{self.prefix}/topics{self._normalize(name)}"

    def frame_topic(self, name: str) -> str:
        return f"{self.prefix}/frames{self._normalize(name)}"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self):
        """Start MQTT client in background thread with auto-reconnect"""
        self._client.reconnect_delay_set(min_delay=1, max_delay=30)
        try:
            self._client.connect(self.config.MQTT_BROKER, self.config.MQTT_PORT, 60)
            self._client.loop_start()
            logger.info(f"Client started ({self.config.MQTT_BROKER}:{self.config.MQTT_PORT})")
        except Exception as e:
            logger.warning(f"Initial connection failed: {e}")
            logger.warning("Will retry in background...")
            self._client.loop_start()

    def stop(self):
        """End all subscriptions and stop the MQTT client"""
        with self._subscriptions_lock:
            subscriptions = [s for subs in self._subscriptions.values() for s in subs]
            self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.end()

        self._client.loop_stop()
        self._client.disconnect()
        for worker in self._workers:
            worker.shutdown(wait=False)
        logger.info("Client stopped")

    # =========================================================================
    # Bus interface
    # =========================================================================

    def list_topics(self):
        """Advertised topics in discovery order"""
        with self._topics_lock:
            return [TopicRecord(name, datatype) for name, datatype in self._topics.items()]

    def subscribe(self, topic: str, on_frame, on_end=None) -> Subscription:
        """Deliver frames of topic to on_frame(Frame) on a callback worker"""
        topic = self._normalize(topic)
        subscription = Subscription(self, topic, on_frame, on_end)
        with self._subscriptions_lock:
            subscribers = self._subscriptions.setdefault(topic, [])
            subscribers.append(subscription)
            first = len(subscribers) == 1
        if first:
            try:
                self._client.subscribe(self.frame_topic(topic))
            except Exception:
                self._discard(subscription)
                raise
            logger.info(f"Subscribed to {topic}")
        return subscription

    def _discard(self, subscription: Subscription) -> None:
        with self._subscriptions_lock:
            subscribers = self._subscriptions.get(subscription.topic, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                self._subscriptions.pop(subscription.topic, None)
        subscription._finish()

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._subscriptions_lock:
            subscribers = self._subscriptions.get(subscription.topic, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            last = not subscribers and subscription.topic in self._subscriptions
            if last:
                del self._subscriptions[subscription.topic]
        if last:
            self._client.unsubscribe(self.frame_topic(subscription.topic))
            logger.info(f"Unsubscribed from {subscription.topic}")

    def advertise(self, name: str, datatype: str) -> bool:
        """Publish a retained advertisement for a topic"""
        payload = json.dumps({'type': datatype})
        result = self._client.publish(self.announce_topic(name), payload, retain=True)
        return result.rc == mqtt.MQTT_ERR_SUCCESS

    def publish_frame(self, name: str, data: bytes) -> bool:
        """Publish one encoded frame on a topic"""
        result = self._client.publish(self.frame_topic(name), data)
        return result.rc == mqtt.MQTT_ERR_SUCCESS

    # =========================================================================
    # MQTT callbacks (network thread)
    # =========================================================================

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        """Called when connected to MQTT broker"""
        logger.info(f"Connected with result code {reason_code}")
        client.subscribe(f"{self.prefix}/topics/#")
        with self._subscriptions_lock:
            topics = list(self._subscriptions)
        for topic in topics:
            client.subscribe(self.frame_topic(topic))
        if topics:
            logger.info(f"Re-subscribed to {len(topics)} frame topic(s)")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties):
        """Called when disconnected from MQTT broker"""
        logger.warning(f"Disconnected with result code {reason_code}")

    def _on_message(self, client, userdata, msg):
        """Route advertisements to the catalog and frames to subscribers"""
        announce_prefix = f"{self.prefix}/topics/"
        frame_prefix = f"{self.prefix}/frames/"
        if msg.topic.startswith(announce_prefix):
            self._handle_advertisement(msg.topic[len(announce_prefix) - 1:], msg.payload)
        elif msg.topic.startswith(frame_prefix):
            self._dispatch_frame(msg.topic[len(frame_prefix) - 1:], msg.payload)

    def _handle_advertisement(self, name: str, payload: bytes) -> None:
        if not payload:
            with self._topics_lock:
                removed = self._topics.pop(name, None)
            if removed is not None:
                logger.info(f"Topic withdrawn: {name}")
            return
        try:
            datatype = json.loads(payload.decode('utf-8'))['type']
        except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring malformed advertisement for {name}: {e}")
            return
        with self._topics_lock:
            known = name in self._topics
            self._topics[name] = datatype
        if not known:
            logger.info(f"Discovered topic {name} ({datatype})")

    def _dispatch_frame(self, name: str, payload: bytes) -> None:
        with self._subscriptions_lock:
            subscribers = list(self._subscriptions.get(name, ()))
        if not subscribers:
            return
        frame = Frame(topic=name, data=bytes(payload), stamp=time.time())
        # One worker per topic keeps its frames in arrival order
        worker = self._workers[zlib.crc32(name.encode('utf-8')) % len(self._workers)]
        try:
            worker.submit(self._deliver, subscribers, frame)
        except RuntimeError:
            logger.debug(f"Dropped frame for {name}: callback workers stopped")

    @staticmethod
    def _deliver(subscribers, frame: Frame) -> None:
        for subscription in subscribers:
            try:
                subscription.deliver(frame)
            except Exception as e:
                logger.warning(f"Frame callback for {frame.topic} failed: {e}")
