"""
Logging setup for the web video server.
"""
import logging
from pathlib import Path

LOGGER_NAME = 'web_video'

_configured = False


def configure_logging(level='INFO', log_file=None):
    """Attach console (and optional file) handlers to the web_video logger"""
    global _configured
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    if _configured:
        return logger

    # Format: [component] message
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter('[%(name)s] %(message)s'))
    logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)s | %(name)s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)
        logger.info(f"File logging enabled: {path}")

    _configured = True
    return logger
