"""Logging setup for the CLI and web entry points."""

import logging
import sys

from clipcast.config import LoggingConfig

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_NOISY_LOGGERS = ("googleapiclient", "urllib3", "httpx", "google_genai")


def setup_logging(config: LoggingConfig) -> None:
    """Configure the root logger with a console and optional file handler."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if config.file is not None:
        config.file.parent.mkdir(parents=True, exist_ok=True)
        handlers.insert(0, logging.FileHandler(config.file, encoding="utf-8"))

    logging.basicConfig(
        level=config.level.upper(),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    if config.quiet:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
