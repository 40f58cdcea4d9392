"""Structured logging: level from settings, key=value records tagged with the current request_id."""
import logging
import sys
import time

from gatekeep.request_context import RequestIdFilter
from gatekeep.settings import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s request_id=%(request_id)s %(message)s"


def configure_logging() -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%SZ")
    formatter.converter = time.gmtime  # trailing Z in datefmt
    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())
    # No-op when the root logger already has handlers (e.g. under a test runner).
    logging.basicConfig(level=level, handlers=[handler])
