"""Structured logging configuration for certflux.

Provides JSON and text formatters, a renewal-context filter that
guarantees every record carries ``domain`` and ``stage`` attributes,
and a one-call ``configure_logging`` function driven by config
settings.

Pipeline code attaches context with ``extra``::

    log.error("Order creation failed", extra={"domain": d, "stage": "order"})
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from certflux.config.settings import LoggingSettings

_CONTEXT_ATTRS = ("domain", "stage")

# Attributes every LogRecord has; anything else on a record came from
# ``extra=`` or a filter.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)),
) | {"message", "asctime", *_CONTEXT_ATTRS}

_NOISY_LOGGERS = ("urllib3", "urllib3.connectionpool", "acme", "acme.client")


def _context_value(record: logging.LogRecord, attr: str) -> str | None:
    value = getattr(record, attr, None)
    if value is None or value == "-":
        return None
    return str(value)


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """One JSON object per line.

    ``domain`` and ``stage`` are emitted only when set; other extras
    are copied as-is (non-JSON values via ``str``).
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in _CONTEXT_ATTRS:
            value = _context_value(record, attr)
            if value is not None:
                entry[attr] = value

        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_") and key not in entry
        )

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Console format: ``<time> <LEVEL> [domain/stage] logger: message``."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s [%(domain)s/%(stage)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class RenewalContextFilter(logging.Filter):
    """Default the ``domain`` and ``stage`` attributes to ``"-"``."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        for attr in _CONTEXT_ATTRS:
            if not hasattr(record, attr):
                setattr(record, attr, "-")
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Route the ``certflux`` logger hierarchy to stderr.

    Bootstrap handlers installed before the config was loaded are
    dropped.  Returns the ``certflux`` logger.
    """
    logger = logging.getLogger("certflux")
    logger.setLevel(getattr(logging, settings.level.upper(), logging.INFO))
    logger.handlers.clear()
    logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        StructuredFormatter() if settings.format == "json" else TextFormatter(),
    )
    handler.addFilter(RenewalContextFilter())
    logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger
