"""Renewal decisions and the per-domain renewal pipeline.

Each cycle asks the CDN for its managed hosts and the validity of the
certificate each one currently serves, then renews every host whose
certificate is missing or expires within ``renew_before_days``::

    normalize host -> fresh persisted cert? --yes--> deploy
                              | no
                              v
    account -> order -> challenges -> fresh key -> finalize
            -> persist -> deploy

A failure in any stage raises the matching :class:`RenewalError`
subclass; it is logged with domain and stage at the per-domain
boundary and never stops sibling domains.  Material is persisted
before deployment, so a failed deploy is retried from disk on the next
cycle instead of issuing a second certificate.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from certflux.config.settings import build_renewal_settings
from certflux.core.crypto import generate_rsa_key
from certflux.core.errors import (
    AccountInitError,
    AccountStageError,
    ChallengeValidationError,
    DeploymentError,
    FinalizationError,
    OrderCreationError,
    PersistenceError,
    ProviderError,
    RenewalError,
)
from certflux.core.types import ChallengeType, RenewalStage
from certflux.models import DomainCertificateStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from cryptography.hazmat.primitives.asymmetric import rsa

    from certflux.acme.base import AcmeTransport
    from certflux.config.settings import RenewalSettings
    from certflux.metrics.collector import MetricsCollector
    from certflux.models import IssuedCertificate
    from certflux.providers.base import CdnProvider
    from certflux.services.account import AccountStore
    from certflux.services.challenge import ChallengeProcessor
    from certflux.services.order import OrderClient
    from certflux.storage.certificates import CertificateStore

log = logging.getLogger(__name__)

DEFAULT_RENEW_BEFORE_DAYS = 15


def needs_renewal(
    status: DomainCertificateStatus,
    now: datetime,
    renew_before_days: int = DEFAULT_RENEW_BEFORE_DAYS,
) -> bool:
    """Whether the served certificate is missing or inside the renewal window."""
    if status.not_after is None:
        return True
    return now + timedelta(days=renew_before_days) > status.not_after


def normalize_domain(hostname: str) -> str:
    """Map a leading-dot CDN host (``.example.com``) to its root domain.

    The root is the last two labels; other hostnames are returned
    unchanged.
    """
    if not hostname.startswith("."):
        return hostname
    labels = [label for label in hostname.split(".") if label]
    return ".".join(labels[-2:])


# ---------------------------------------------------------------------------
# Cycle reporting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DomainOutcome:
    """What happened to one host during a cycle."""

    hostname: str
    domain: str
    action: str  # "renewed" | "redeployed" | "skipped" | "failed"
    serial: str | None = None
    stage: RenewalStage | None = None
    error: str | None = None


@dataclass
class CycleReport:
    started_at: datetime
    outcomes: list[DomainOutcome] = field(default_factory=list)

    def _with(self, action: str) -> list[DomainOutcome]:
        return [o for o in self.outcomes if o.action == action]

    @property
    def renewed(self) -> list[DomainOutcome]:
        return self._with("renewed")

    @property
    def redeployed(self) -> list[DomainOutcome]:
        return self._with("redeployed")

    @property
    def skipped(self) -> list[DomainOutcome]:
        return self._with("skipped")

    @property
    def failed(self) -> list[DomainOutcome]:
        return self._with("failed")

    @property
    def ok(self) -> bool:
        return not self.failed


# ---------------------------------------------------------------------------
# Scheduler
# ---------------------------------------------------------------------------


class RenewalScheduler:
    """Runs renewal cycles over the CDN's managed domains.

    Parameters
    ----------
    account_store:
        Shared account store (one per process).
    transport:
        ACME transport the account is bound on.
    order_client:
        Creates, authorizes and finalizes orders.
    processor:
        Validates authorizations.
    cert_store:
        Persists issued material and serves deploy-only retries.
    cdn:
        Lists managed domains and receives deployments.
    settings:
        The ``renewal`` config section; defaults when ``None``.
    preferred_type:
        Challenge type tried first for every authorization.
    metrics:
        Optional collector.
    clock:
        Returns the current UTC time; injectable for tests.
    key_factory:
        Produces the fresh domain key for each issuance.

    """

    def __init__(
        self,
        *,
        account_store: AccountStore,
        transport: AcmeTransport,
        order_client: OrderClient,
        processor: ChallengeProcessor,
        cert_store: CertificateStore,
        cdn: CdnProvider,
        settings: RenewalSettings | None = None,
        preferred_type: str = ChallengeType.DNS_01,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], datetime] | None = None,
        key_factory: Callable[[], rsa.RSAPrivateKey] | None = None,
    ) -> None:
        self._accounts = account_store
        self._transport = transport
        self._orders = order_client
        self._processor = processor
        self._certs = cert_store
        self._cdn = cdn
        self._settings = settings or build_renewal_settings()
        self._preferred_type = preferred_type
        self._metrics = metrics
        self._clock = clock or (lambda: datetime.now(UTC))
        self._key_factory = key_factory or (lambda: generate_rsa_key(self._settings.key_size))
        self._cycle_lock = threading.Lock()

    # -- decisions ----------------------------------------------------------

    def plan(self) -> list[tuple[DomainCertificateStatus, bool]]:
        """Every managed host with its renewal decision; no side effects."""
        now = self._clock()
        return [
            (status, needs_renewal(status, now, self._settings.renew_before_days))
            for status in self._cdn.list_managed_domains()
        ]

    # -- cycle --------------------------------------------------------------

    def run_cycle(self, only: Iterable[str] | None = None) -> CycleReport:
        """Check all managed domains and renew those that need it.

        Overlapping calls (manual and scheduled) run one after the
        other.  *only* restricts the cycle to the given hosts (matched
        before or after normalization).

        Raises
        ------
        ProviderError
            If the CDN cannot list its managed domains.

        """
        with self._cycle_lock:
            report = CycleReport(started_at=self._clock())
            wanted = set(only) if only is not None else None

            statuses = self._cdn.list_managed_domains()
            if wanted is not None:
                statuses = [
                    s for s in statuses
                    if s.hostname in wanted or normalize_domain(s.hostname) in wanted
                ]
            log.info("Renewal cycle started: %d managed domain(s)", len(statuses))

            if self._settings.max_workers > 1 and len(statuses) > 1:
                with ThreadPoolExecutor(
                    max_workers=self._settings.max_workers,
                    thread_name_prefix="certflux-renew",
                ) as pool:
                    report.outcomes.extend(pool.map(self._process_status, statuses))
            else:
                report.outcomes.extend(self._process_status(s) for s in statuses)

            if self._metrics:
                self._metrics.increment("certflux_cycles_total")
            log.info(
                "Renewal cycle finished: %d renewed, %d redeployed, %d skipped, %d failed",
                len(report.renewed),
                len(report.redeployed),
                len(report.skipped),
                len(report.failed),
            )
            return report

    def _process_status(self, status: DomainCertificateStatus) -> DomainOutcome:
        """Per-domain boundary: decide, renew, and contain failures."""
        hostname = status.hostname
        domain = normalize_domain(hostname)
        now = self._clock()

        if status.not_after is not None and self._metrics:
            self._metrics.set_gauge(
                "certflux_certificate_days_remaining",
                round((status.not_after - now).total_seconds() / 86400, 2),
                labels={"domain": hostname},
            )

        if not needs_renewal(status, now, self._settings.renew_before_days):
            log.debug(
                "Certificate valid until %s, no renewal needed",
                status.not_after.isoformat() if status.not_after else None,
                extra={"domain": hostname, "stage": RenewalStage.CHECK},
            )
            return DomainOutcome(hostname=hostname, domain=domain, action="skipped")

        if status.not_after is None:
            log.info("No certificate deployed", extra={"domain": hostname, "stage": RenewalStage.CHECK})
        else:
            log.info(
                "Certificate expires %s, renewing",
                status.not_after.isoformat(),
                extra={"domain": hostname, "stage": RenewalStage.CHECK},
            )

        try:
            outcome = self.renew_domain(hostname)
        except RenewalError as exc:
            log.error(
                "Renewal failed: %s",
                exc.detail,
                extra={"domain": exc.domain, "stage": exc.stage},
            )
            self._count_failure(exc.stage)
            return DomainOutcome(
                hostname=hostname,
                domain=domain,
                action="failed",
                stage=exc.stage,
                error=exc.detail,
            )
        except Exception as exc:
            log.exception(
                "Unexpected renewal failure",
                extra={"domain": domain, "stage": RenewalStage.CHECK},
            )
            self._count_failure(RenewalStage.CHECK)
            return DomainOutcome(
                hostname=hostname,
                domain=domain,
                action="failed",
                stage=RenewalStage.CHECK,
                error=str(exc),
            )

        if self._metrics:
            self._metrics.increment("certflux_renewals_total", labels={"action": outcome.action})
        return outcome

    def _count_failure(self, stage: RenewalStage) -> None:
        if self._metrics:
            self._metrics.increment("certflux_renewal_failures_total", labels={"stage": str(stage)})

    # -- pipeline -----------------------------------------------------------

    def renew_domain(self, hostname: str) -> DomainOutcome:
        """Renew *hostname* end to end.

        Raises
        ------
        RenewalError
            Subclass naming the failed stage.

        """
        domain = normalize_domain(hostname)

        reusable = self._reusable_certificate(domain)
        if reusable is not None:
            log.info(
                "Persisted certificate serial %s is still fresh; deploying without reissue",
                reusable.serial_hex,
                extra={"domain": domain, "stage": RenewalStage.DEPLOY},
            )
            self._deploy(domain, reusable)
            return DomainOutcome(
                hostname=hostname,
                domain=domain,
                action="redeployed",
                serial=reusable.serial_hex,
            )

        try:
            self._accounts.get_or_create_account(self._transport)
        except AccountInitError as exc:
            raise AccountStageError(domain, str(exc)) from exc

        order = self._orders.create_order([domain], self._settings.validity_days)
        if order is None:
            raise OrderCreationError(domain, "the CA refused the order")

        if not self._orders.process_authorizations(order, self._processor, self._preferred_type):
            raise ChallengeValidationError(domain, "one or more authorizations failed")

        issued = self._orders.finalize_order(order, self._key_factory())
        if issued is None:
            raise FinalizationError(domain, "the CA did not issue a certificate")

        try:
            self._certs.persist(domain, issued)
        except OSError as exc:
            raise PersistenceError(domain, f"cannot write certificate files: {exc}") from exc

        self._deploy(domain, issued)
        return DomainOutcome(
            hostname=hostname,
            domain=domain,
            action="renewed",
            serial=issued.serial_hex,
        )

    def redeploy(self, domain: str) -> DomainOutcome:
        """Deploy the newest persisted certificate for *domain* without reissuing.

        Raises
        ------
        DeploymentError
            If nothing is persisted for *domain* or the CDN rejects it.

        """
        domain = normalize_domain(domain)
        persisted = self._certs.latest(domain)
        if persisted is None:
            raise DeploymentError(domain, "no persisted certificate to deploy")
        try:
            issued = self._certs.load(persisted)
        except (OSError, ValueError) as exc:
            raise DeploymentError(domain, f"cannot read {persisted.cert_path}: {exc}") from exc
        self._deploy(domain, issued)
        return DomainOutcome(
            hostname=domain,
            domain=domain,
            action="redeployed",
            serial=issued.serial_hex,
        )

    def _reusable_certificate(self, domain: str) -> IssuedCertificate | None:
        """Newest persisted certificate if it is outside the renewal window."""
        persisted = self._certs.latest(domain)
        if persisted is None:
            return None
        try:
            issued = self._certs.load(persisted)
        except (OSError, ValueError) as exc:
            log.warning(
                "Ignoring unreadable persisted certificate %s: %s",
                persisted.cert_path,
                exc,
                extra={"domain": domain, "stage": RenewalStage.DEPLOY},
            )
            return None

        status = DomainCertificateStatus(
            hostname=domain,
            not_before=issued.not_before,
            not_after=issued.not_after,
        )
        if needs_renewal(status, self._clock(), self._settings.renew_before_days):
            return None
        return issued

    def _deploy(self, domain: str, issued: IssuedCertificate) -> None:
        cert_name = f"{self._settings.cert_name_prefix}-{issued.serial_hex}"
        try:
            accepted = self._cdn.deploy_certificate(
                domain,
                cert_name,
                issued.pem_chain,
                issued.pem_key,
            )
        except (ProviderError, OSError) as exc:
            raise DeploymentError(domain, f"CDN deployment of {cert_name} failed: {exc}") from exc
        if not accepted:
            raise DeploymentError(domain, f"CDN rejected certificate {cert_name}")
        log.info(
            "Deployed certificate %s",
            cert_name,
            extra={"domain": domain, "stage": RenewalStage.DEPLOY},
        )
