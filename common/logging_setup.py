"""
common.logging_setup

Set up standard logging for the holder stats tools.
"""
import logging
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: int | None = None):
    if level is None:
        name = os.environ.get("LOG_LEVEL", "INFO").upper()
        level = getattr(logging, name, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # one line per HTTP request is too chatty during long scans
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))
