"""Logging set-up for the ledger service."""

import logging
import sys

from travel_ledger.core.config import LOG_LEVEL

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Attach a single stream handler to the package logger."""
    global _configured

    logger = logging.getLogger("travel_ledger")
    logger.setLevel((level or LOG_LEVEL).upper())
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    logger.addHandler(handler)
    _configured = True
