"""Structured logging: level from settings, key=value format for request and limiter logs."""
import logging
import sys
import time

from inventory_api.settings import settings


def configure_logging() -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stdout,
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    # datefmt ends in Z, so render asctime in UTC.
    logging.Formatter.converter = time.gmtime
