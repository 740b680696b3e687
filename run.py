#!/usr/bin/env python3
"""
Web video server - Entry Point
"""
import atexit
import logging
import signal
import sys

from dotenv import load_dotenv

# Load environment variables before importing app
load_dotenv()

from web_video_server import create_app
from web_video_server.config import Config
from web_video_server.logging_config import configure_logging

logger = logging.getLogger('web_video')


def main():
    """Main entry point"""
    configure_logging(Config.LOG_LEVEL, Config.LOG_FILE)
    app = create_app(Config)
    bus = app.extensions['web_video_bus']
    server = app.extensions['web_video_server']

    def cleanup():
        """Graceful shutdown - stop all services"""
        logger.info("Shutting down...")
        server.stop()
        bus.stop()
        logger.info("Shutdown complete")

    atexit.register(cleanup)
    signal.signal(signal.SIGINT, lambda s, f: sys.exit(0))
    signal.signal(signal.SIGTERM, lambda s, f: sys.exit(0))

    # Start background services
    bus.start()
    server.start()

    logger.info(f"Starting web server on http://{Config.ADDRESS}:{Config.PORT}")
    logger.info("Waiting for connections")
    app.run(host=Config.ADDRESS, port=Config.PORT, threaded=True, use_reloader=False)


if __name__ == '__main__':
    main()
