"""Logger setup for the AgriSmart service"""

import logging
import sys

from . import config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(level: str = None):
    """Setup logging configuration"""
    level = level or config.LOG_LEVEL

    logger = logging.getLogger()
    logger.setLevel(level)

    # Avoid stacking handlers when the app factory runs more than once (tests)
    if any(getattr(h, "_agrismart", False) for h in logger.handlers):
        return

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    console_handler._agrismart = True
    logger.addHandler(console_handler)

    logger.info("Logging configured")
