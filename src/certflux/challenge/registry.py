"""Challenge handler registry.

Dispatches on the challenge-type tag the CA sends to one of the
built-in handlers.  The set of supported types is closed: anything
else is reported as unsupported so the processor can fail the
authorization without side effects.

Usage::

    from certflux.challenge.registry import ChallengeRegistry

    registry = ChallengeRegistry(settings.challenges, dns_provider)
    handler = registry.build(ChallengeType.DNS_01)
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from certflux.challenge.base import ChallengeError
from certflux.challenge.dns01 import Dns01Handler
from certflux.challenge.http01 import Http01Handler
from certflux.core.types import ChallengeType

if TYPE_CHECKING:
    from certflux.challenge.base import ChallengeHandler
    from certflux.config.settings import ChallengeSettings
    from certflux.providers.base import DnsProvider

log = logging.getLogger(__name__)


class ChallengeRegistry:
    """Builds handlers for the supported challenge types.

    Parameters
    ----------
    settings:
        The ``challenges`` section from :class:`CertfluxSettings`.
    dns_provider:
        Provider for DNS-01 records.  DNS-01 is unsupported without one.
    stop_event:
        Shared shutdown signal handed to handlers that wait.

    """

    def __init__(
        self,
        settings: ChallengeSettings | None = None,
        dns_provider: DnsProvider | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._settings = settings
        self._dns = dns_provider
        self._stop_event = stop_event or threading.Event()

    @property
    def supported_types(self) -> frozenset[ChallengeType]:
        types = {ChallengeType.HTTP_01}
        if self._dns is not None:
            types.add(ChallengeType.DNS_01)
        return frozenset(types)

    def build(self, challenge_type: str) -> ChallengeHandler:
        """Return a handler for *challenge_type*.

        Raises
        ------
        ChallengeError
            If the type is not supported.

        """
        if challenge_type == ChallengeType.DNS_01 and self._dns is not None:
            return Dns01Handler(
                self._dns,
                settings=getattr(self._settings, "dns01", None),
                stop_event=self._stop_event,
            )
        if challenge_type == ChallengeType.HTTP_01:
            http01 = getattr(self._settings, "http01", None)
            return Http01Handler(webroot=getattr(http01, "webroot", "/var/www"))

        msg = f"Unsupported challenge type '{challenge_type}'"
        raise ChallengeError(msg)
