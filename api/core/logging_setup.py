"""
Process-wide logging setup.
"""

from __future__ import annotations

import logging

from . import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging() -> None:
    level = getattr(logging, config.log_level(), logging.INFO)
    root = logging.getLogger()
    if root.handlers:
        # uvicorn (or a test runner) already installed handlers.
        root.setLevel(level)
        return
    logging.basicConfig(level=level, format=LOG_FORMAT)
