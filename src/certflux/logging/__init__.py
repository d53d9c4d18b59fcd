"""Logging subsystem for certflux.

Public API::

    from certflux.logging import configure_logging

    configure_logging(settings.logging)
"""

from certflux.logging.setup import configure_logging

__all__ = ["configure_logging"]
