"""Challenge selection and the validation state machine.

For one authorization the processor:

1. selects a challenge (preferred type, else ``dns-01``, else
   ``http-01``; nothing supported means failure with no side effects),
2. refreshes it; ``valid`` is an immediate success and any other
   non-``pending`` state a failure (never re-triggered),
3. publishes the response through the type's handler and waits a short
   settle delay,
4. triggers validation and polls with exponential backoff
   (``base * growth ** attempt``) for a bounded number of attempts.

Timeout counts as invalid.  Handler cleanup runs exactly once after
the handler is built, whatever the outcome.  All waits go through a
shared stop event so shutdown cancels in-flight polling.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import TYPE_CHECKING

from certflux.challenge.base import ChallengeError, prepared
from certflux.core.errors import AcmeTransportError, ChallengeValidationError
from certflux.core.types import AuthorizationStatus, ChallengeStatus, ChallengeType

if TYPE_CHECKING:
    from collections.abc import Iterator

    from certflux.acme.base import AcmeTransport
    from certflux.challenge.registry import ChallengeRegistry
    from certflux.config.settings import ChallengeSettings
    from certflux.metrics.collector import MetricsCollector
    from certflux.models import Authorization, Challenge

log = logging.getLogger(__name__)

_FALLBACK_ORDER = (ChallengeType.DNS_01, ChallengeType.HTTP_01)


def backoff_delay(attempt: int, base: float = 10.0, growth: float = 1.5) -> float:
    """Seconds to wait after poll *attempt* (0-based)."""
    return base * growth**attempt


def select_challenge(
    authorization: Authorization,
    supported: frozenset[str] | set[str],
    preferred_type: str | None = None,
) -> Challenge | None:
    """Pick the challenge to answer, or ``None`` if nothing usable is offered."""
    candidates = [preferred_type] if preferred_type else []
    candidates.extend(t for t in _FALLBACK_ORDER if t != preferred_type)
    for challenge_type in candidates:
        if challenge_type not in supported:
            continue
        challenge = authorization.find_challenge(challenge_type)
        if challenge is not None:
            return challenge
    return None


class ChallengeProcessor:
    """Drives challenge validation for single authorizations.

    Parameters
    ----------
    transport:
        ACME transport bound to the account.
    registry:
        Builds the handler for the selected challenge type.
    settle_delay:
        Seconds between publishing the response and triggering.
    max_attempts:
        Status polls after triggering before giving up.
    backoff_base, backoff_growth:
        Poll wait is ``backoff_base * backoff_growth ** attempt``.
    stop_event:
        Cancels waits when set.
    metrics:
        Optional collector for challenge outcome counters.

    """

    def __init__(
        self,
        transport: AcmeTransport,
        registry: ChallengeRegistry,
        *,
        settle_delay: float = 3.0,
        max_attempts: int = 5,
        backoff_base: float = 10.0,
        backoff_growth: float = 1.5,
        stop_event: threading.Event | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if max_attempts < 1:
            msg = f"max_attempts must be at least 1, got {max_attempts}"
            raise ValueError(msg)
        self._transport = transport
        self._registry = registry
        self._settle_delay = settle_delay
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._backoff_growth = backoff_growth
        self._stop_event = stop_event or threading.Event()
        self._metrics = metrics
        self._resource_locks: dict[str, threading.Lock] = {}
        self._resource_locks_guard = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        transport: AcmeTransport,
        registry: ChallengeRegistry,
        settings: ChallengeSettings,
        *,
        stop_event: threading.Event | None = None,
        metrics: MetricsCollector | None = None,
    ) -> ChallengeProcessor:
        return cls(
            transport,
            registry,
            settle_delay=settings.settle_delay_seconds,
            max_attempts=settings.max_attempts,
            backoff_base=settings.backoff_base_seconds,
            backoff_growth=settings.backoff_growth,
            stop_event=stop_event,
            metrics=metrics,
        )

    # -- public API ---------------------------------------------------------

    def process_authorization(
        self,
        authorization: Authorization,
        preferred_type: str | None = None,
    ) -> bool:
        """Validate *authorization*; ``True`` on success, ``False`` otherwise."""
        try:
            self.validate(authorization, preferred_type)
        except ChallengeValidationError as exc:
            log.error(
                "Challenge validation failed: %s",
                exc.detail,
                extra={"domain": exc.domain, "stage": exc.stage},
            )
            return False
        return True

    def validate(
        self,
        authorization: Authorization,
        preferred_type: str | None = None,
    ) -> None:
        """Validate *authorization*, raising :class:`ChallengeValidationError`."""
        domain = authorization.domain

        if authorization.status == AuthorizationStatus.VALID:
            log.debug("Authorization already valid", extra={"domain": domain, "stage": "challenge"})
            return
        if authorization.status != AuthorizationStatus.PENDING:
            raise ChallengeValidationError(domain, f"authorization is {authorization.status}")

        challenge = select_challenge(
            authorization,
            self._registry.supported_types,
            preferred_type,
        )
        if challenge is None:
            offered = ", ".join(authorization.offered_types) or "none"
            raise ChallengeValidationError(
                domain,
                f"no supported challenge type offered (offered: {offered})",
            )

        try:
            challenge = self._transport.fetch_challenge(challenge)
        except AcmeTransportError as exc:
            raise ChallengeValidationError(domain, f"challenge refresh failed: {exc}") from exc

        if challenge.status == ChallengeStatus.VALID:
            log.info(
                "%s challenge already valid",
                challenge.type,
                extra={"domain": domain, "stage": "challenge"},
            )
            return
        if challenge.status != ChallengeStatus.PENDING:
            raise ChallengeValidationError(
                domain,
                f"{challenge.type} challenge is already {challenge.status}, not re-triggering",
            )

        try:
            handler = self._registry.build(challenge.type)
        except ChallengeError as exc:
            raise ChallengeValidationError(domain, exc.detail) from exc

        with self._resource_lock(handler.resource_key(domain, challenge)):
            try:
                with prepared(handler, domain, challenge):
                    self._trigger_and_poll(domain, challenge)
            except ChallengeError as exc:
                self._count(challenge.type, "error")
                raise ChallengeValidationError(domain, exc.detail) from exc

    # -- internals ----------------------------------------------------------

    def _trigger_and_poll(self, domain: str, challenge: Challenge) -> None:
        if self._stop_event.wait(timeout=self._settle_delay):
            raise ChallengeValidationError(domain, "cancelled by shutdown before trigger")

        try:
            self._transport.trigger_challenge(challenge)
        except AcmeTransportError as exc:
            self._count(challenge.type, "error")
            raise ChallengeValidationError(domain, f"challenge trigger failed: {exc}") from exc
        log.info(
            "Triggered %s validation",
            challenge.type,
            extra={"domain": domain, "stage": "challenge"},
        )

        last_attempt = self._max_attempts - 1
        for attempt in range(self._max_attempts):
            try:
                challenge = self._transport.fetch_challenge(challenge)
            except AcmeTransportError as exc:
                if not exc.retryable:
                    self._count(challenge.type, "error")
                    raise ChallengeValidationError(
                        domain,
                        f"challenge status check failed: {exc}",
                    ) from exc
                log.warning(
                    "Challenge status check failed (%d/%d): %s",
                    attempt + 1,
                    self._max_attempts,
                    exc,
                    extra={"domain": domain, "stage": "challenge"},
                )
            else:
                if challenge.status == ChallengeStatus.VALID:
                    log.info(
                        "%s challenge valid",
                        challenge.type,
                        extra={"domain": domain, "stage": "challenge"},
                    )
                    self._count(challenge.type, "valid")
                    return
                if challenge.status == ChallengeStatus.INVALID:
                    self._count(challenge.type, "invalid")
                    raise ChallengeValidationError(
                        domain,
                        f"CA rejected {challenge.type} challenge: "
                        f"{challenge.error or 'no detail given'}",
                    )

            if attempt == last_attempt:
                break
            delay = backoff_delay(attempt, self._backoff_base, self._backoff_growth)
            log.debug(
                "Waiting for validation (%d/%d), next check in %.1fs",
                attempt + 1,
                self._max_attempts,
                delay,
                extra={"domain": domain, "stage": "challenge"},
            )
            if self._stop_event.wait(timeout=delay):
                raise ChallengeValidationError(domain, "cancelled by shutdown while polling")

        self._count(challenge.type, "timeout")
        raise ChallengeValidationError(
            domain,
            f"{challenge.type} challenge not valid after {self._max_attempts} attempts",
        )

    @contextlib.contextmanager
    def _resource_lock(self, key: str) -> Iterator[None]:
        with self._resource_locks_guard:
            lock = self._resource_locks.setdefault(key, threading.Lock())
        with lock:
            yield

    def _count(self, challenge_type: str, outcome: str) -> None:
        if self._metrics:
            self._metrics.increment(
                "certflux_challenges_total",
                labels={"type": str(challenge_type), "outcome": outcome},
            )
