"""
Configuration classes for the web video server.
"""
import os


class Config:
    """Base configuration class"""

    # HTTP
    ADDRESS = os.environ.get('WEB_VIDEO_ADDRESS', '0.0.0.0')
    PORT = int(os.environ.get('WEB_VIDEO_PORT', '8080'))
    SERVER_THREADS = int(os.environ.get('WEB_VIDEO_SERVER_THREADS', '1'))
    SERVER_HEADER = 'web_video_server'

    # Bus callback workers
    BUS_THREADS = int(os.environ.get('WEB_VIDEO_BUS_THREADS', '2'))

    # Streaming
    DEFAULT_STREAM_TYPE = os.environ.get('WEB_VIDEO_DEFAULT_STREAM_TYPE', 'mjpeg')
    SESSION_QUEUE_SIZE = int(os.environ.get('WEB_VIDEO_SESSION_QUEUE', '2'))
    CONNECTION_BUFFER = int(os.environ.get('WEB_VIDEO_CONNECTION_BUFFER', '16'))

    # Inactive session reclamation (seconds), not configurable
    SWEEP_PERIOD = 0.5

    # MQTT
    MQTT_BROKER = os.environ.get('MQTT_BROKER', 'localhost')
    MQTT_PORT = int(os.environ.get('MQTT_PORT', '1883'))
    MQTT_USE_TLS = os.environ.get('MQTT_USE_TLS', 'false').lower() == 'true'
    MQTT_CLIENT_ID = os.environ.get('MQTT_CLIENT_ID', 'web_video_server')
    MQTT_USERNAME = os.environ.get('MQTT_USERNAME')
    MQTT_PASSWORD = os.environ.get('MQTT_PASSWORD')
    MQTT_TOPIC_PREFIX = os.environ.get('MQTT_TOPIC_PREFIX', 'web_video')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('LOG_FILE')

