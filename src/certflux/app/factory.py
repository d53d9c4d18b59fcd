"""Runtime factory for certflux.

Builds the object graph a renewal run needs from the loaded settings.
Every component gets the same stop event, so stopping the worker also
cancels propagation and validation waits in flight.

Usage::

    from certflux.app import create_runtime
    from certflux.config import get_config

    runtime = create_runtime(get_config().settings)
    report = runtime.scheduler.run_cycle()
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from certflux.acme.client import AcmeClientTransport
from certflux.challenge.registry import ChallengeRegistry
from certflux.core.types import ChallengeType
from certflux.metrics.collector import MetricsCollector
from certflux.providers.registry import load_cdn_provider, load_dns_provider
from certflux.services.account import AccountStore
from certflux.services.challenge import ChallengeProcessor
from certflux.services.order import OrderClient
from certflux.services.renewal import RenewalScheduler
from certflux.services.renewal_worker import RenewalWorker
from certflux.storage.certificates import CertificateStore

if TYPE_CHECKING:
    from certflux.acme.base import AcmeTransport
    from certflux.config.settings import CertfluxSettings
    from certflux.providers.base import CdnProvider, DnsProvider

log = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Wired components for one process."""

    settings: CertfluxSettings
    transport: AcmeTransport
    account_store: AccountStore
    dns: DnsProvider | None
    cdn: CdnProvider
    cert_store: CertificateStore
    scheduler: RenewalScheduler
    stop_event: threading.Event
    metrics: MetricsCollector = field(default_factory=MetricsCollector)

    def create_worker(self) -> RenewalWorker:
        return RenewalWorker(
            self.scheduler,
            self.settings.renewal.interval_seconds,
            stop_event=self.stop_event,
            metrics=self.metrics,
        )


def create_runtime(
    settings: CertfluxSettings,
    *,
    transport: AcmeTransport | None = None,
    stop_event: threading.Event | None = None,
    metrics: MetricsCollector | None = None,
) -> Runtime:
    """Create and wire all renewal components.

    Parameters
    ----------
    settings:
        Typed settings from :class:`CertfluxConfig`.
    transport:
        ACME transport to use instead of the ``acme``-library client.
    stop_event:
        Shared shutdown signal; a new one is created when ``None``.
    metrics:
        Collector shared by all components.

    Returns
    -------
    Runtime
        Components ready to run a cycle or start a worker.

    Raises
    ------
    ProviderError
        If a configured provider cannot be loaded.

    """
    stop_event = stop_event or threading.Event()
    metrics = metrics or MetricsCollector()

    acme = settings.acme
    if transport is None:
        transport = AcmeClientTransport(
            acme.directory_url,
            user_agent=acme.user_agent,
            verify_ssl=acme.verify_ssl,
            finalize_timeout_seconds=acme.finalize_timeout_seconds,
        )

    account_store = AccountStore(
        acme.keystore_path,
        acme.account_file,
        password=acme.keystore_password,
        contact_email=acme.contact_email,
        key_size=acme.key_size,
    )

    # -- Providers ----------------------------------------------------------
    cdn = load_cdn_provider(settings.providers.cdn)
    dns: DnsProvider | None = None
    if settings.challenges.preferred_type == ChallengeType.DNS_01:
        dns = load_dns_provider(settings.providers.dns)
    else:
        log.info(
            "Preferred challenge type is %s; DNS provider not loaded",
            settings.challenges.preferred_type,
        )

    # -- Challenge pipeline -------------------------------------------------
    registry = ChallengeRegistry(settings.challenges, dns, stop_event=stop_event)
    processor = ChallengeProcessor.from_settings(
        transport,
        registry,
        settings.challenges,
        stop_event=stop_event,
        metrics=metrics,
    )

    cert_store = CertificateStore(settings.renewal.cert_dir)
    scheduler = RenewalScheduler(
        account_store=account_store,
        transport=transport,
        order_client=OrderClient(transport),
        processor=processor,
        cert_store=cert_store,
        cdn=cdn,
        settings=settings.renewal,
        preferred_type=settings.challenges.preferred_type,
        metrics=metrics,
    )

    log.debug(
        "Runtime wired: challenge types %s, cert dir %s",
        sorted(registry.supported_types),
        cert_store.directory,
    )
    return Runtime(
        settings=settings,
        transport=transport,
        account_store=account_store,
        dns=dns,
        cdn=cdn,
        cert_store=cert_store,
        scheduler=scheduler,
        stop_event=stop_event,
        metrics=metrics,
    )
