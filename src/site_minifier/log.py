"""Logging helpers for site-minifier.

The library only ever *emits* records through ``logging.getLogger(__name__)``
loggers under the ``site_minifier`` namespace. Handlers are the host's
business; :func:`setup_logging` exists for the benchmark script, the HTTP
service and ad-hoc command line use.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

LOGGER_NAME = "site_minifier"

# Prefix shared by every message so warnings stand out in a host build log.
LOG_PREFIX = "Site Minifier:"


def setup_logging(verbose: bool = False, log_file: str | None = None) -> logging.Logger:
    """Attach console (and optionally rotating file) handlers to the package logger."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Clear existing handlers to honor verbosity changes
    for h in list(logger.handlers):
        logger.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    )

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_file:
        fh = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3)
        fh.setLevel(level)
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger
