"""DNS-01 challenge handler (RFC 8555 §8.4).

Publishes a TXT record at ``_acme-challenge.{domain}`` whose value is
the base64url-encoded SHA-256 digest of the key authorization, using
the configured :class:`~certflux.providers.base.DnsProvider`.

When ``challenges.dns01.propagation_checks`` is non-zero, ``prepare``
also waits until a resolver serves the record (or the checks run out,
in which case validation is attempted anyway).
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from certflux.challenge.base import ChallengeError, ChallengeHandler
from certflux.core.types import ChallengeType
from certflux.providers.propagation import challenge_record_name

if TYPE_CHECKING:
    from certflux.config.settings import Dns01Settings
    from certflux.models import Challenge
    from certflux.providers.base import DnsProvider

log = logging.getLogger(__name__)


class Dns01Handler(ChallengeHandler):
    """Places DNS-01 TXT records through a DNS provider.

    Parameters
    ----------
    dns_provider:
        Provider used to add and remove the record.
    settings:
        Propagation-check tuning; no check when ``None``.
    stop_event:
        Set on shutdown to abandon a propagation wait.

    """

    challenge_type = ChallengeType.DNS_01

    def __init__(
        self,
        dns_provider: DnsProvider,
        settings: Dns01Settings | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._dns = dns_provider
        self._settings = settings
        self._stop_event = stop_event or threading.Event()

    def resource_key(self, domain: str, challenge: Challenge) -> str:
        return challenge_record_name(domain)

    def prepare(self, domain: str, challenge: Challenge) -> None:
        record_name = challenge_record_name(domain)
        value = challenge.dns_digest
        try:
            self._dns.add_txt_record(record_name, value)
        except Exception as exc:
            msg = f"Cannot create TXT record {record_name}: {exc}"
            raise ChallengeError(msg) from exc
        log.info(
            "DNS-01 TXT record created: %s",
            record_name,
            extra={"domain": domain, "stage": "challenge"},
        )
        self._await_propagation(domain, record_name, value)

    def _await_propagation(self, domain: str, record_name: str, value: str) -> None:
        checks = getattr(self._settings, "propagation_checks", 0)
        interval = getattr(self._settings, "propagation_interval_seconds", 10.0)
        resolvers = getattr(self._settings, "resolvers", ())
        timeout = getattr(self._settings, "timeout_seconds", 10.0)
        for attempt in range(1, checks + 1):
            try:
                visible = self._dns.check_propagation(
                    record_name,
                    value,
                    resolvers=resolvers,
                    timeout=timeout,
                )
            except Exception as exc:
                msg = f"Propagation check for {record_name} failed: {exc}"
                raise ChallengeError(msg) from exc
            if visible:
                log.debug(
                    "TXT %s visible after %d check(s)",
                    record_name,
                    attempt,
                    extra={"domain": domain, "stage": "challenge"},
                )
                return
            if self._stop_event.wait(timeout=interval):
                msg = f"Shutdown while waiting for {record_name} to propagate"
                raise ChallengeError(msg)
        if checks:
            log.warning(
                "TXT %s not visible after %d check(s); triggering validation anyway",
                record_name,
                checks,
                extra={"domain": domain, "stage": "challenge"},
            )

    def cleanup(self, domain: str, challenge: Challenge) -> None:
        record_name = challenge_record_name(domain)
        try:
            self._dns.remove_txt_record(record_name)
        except Exception as exc:  # noqa: BLE001
            log.warning(
                "Failed to remove TXT record %s: %s",
                record_name,
                exc,
                extra={"domain": domain, "stage": "challenge"},
            )
        else:
            log.info(
                "DNS-01 TXT record removed: %s",
                record_name,
                extra={"domain": domain, "stage": "challenge"},
            )
