"""Logging setup for the inventory service."""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once.

    Repeated calls (tests, app factory invoked twice) only adjust the level.
    """
    root = logging.getLogger()
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    if not root.handlers:
        logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    root.setLevel(numeric_level)
