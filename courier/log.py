"""Logging setup for applications embedding courier."""

import logging

from courier.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger with the standard courier format.

    *level* overrides ``settings.log_level`` (e.g. ``"DEBUG"``).
    """
    name = (level or settings.log_level).upper()
    logging.basicConfig(format=LOG_FORMAT, level=getattr(logging, name, logging.INFO))
