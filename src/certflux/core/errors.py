"""Error taxonomy for the renewal pipeline.

Every stage of a per-domain renewal raises a subclass of
:class:`RenewalError` carrying the domain and the stage it failed in,
so the scheduler can log and count failures without inspecting
messages.  :class:`AccountInitError` is raised by the account store
and wrapped into the pipeline by the scheduler.
"""

from __future__ import annotations

from certflux.core.types import RenewalStage


class CertfluxError(Exception):
    """Base class for all certflux errors."""


class AccountInitError(CertfluxError):
    """The ACME account could not be loaded, bound or created."""


class AcmeTransportError(CertfluxError):
    """Raised by an ACME transport when the CA rejects a request.

    Parameters
    ----------
    detail:
        Human-readable problem detail returned by the CA.
    typ:
        The ACME problem type URN, when the CA supplied one.
    retryable:
        Whether the failure looks transient (network, 5xx, rate limit).

    """

    def __init__(
        self,
        detail: str,
        *,
        typ: str | None = None,
        retryable: bool = False,
    ) -> None:
        self.detail = detail
        self.typ = typ
        self.retryable = retryable
        super().__init__(f"{typ}: {detail}" if typ else detail)


class ProviderError(CertfluxError):
    """Raised by DNS/CDN providers when a vendor call fails."""


class RenewalError(CertfluxError):
    """A per-domain renewal failed at a specific pipeline stage.

    Parameters
    ----------
    domain:
        The domain whose renewal failed.
    detail:
        Description of the failure.

    """

    stage: RenewalStage = RenewalStage.CHECK

    def __init__(self, domain: str, detail: str) -> None:
        self.domain = domain
        self.detail = detail
        super().__init__(f"[{domain}] {self.stage}: {detail}")


class OrderCreationError(RenewalError):
    stage = RenewalStage.ORDER


class ChallengeValidationError(RenewalError):
    stage = RenewalStage.CHALLENGE


class FinalizationError(RenewalError):
    stage = RenewalStage.FINALIZE


class PersistenceError(RenewalError):
    stage = RenewalStage.PERSIST


class DeploymentError(RenewalError):
    stage = RenewalStage.DEPLOY


class AccountStageError(RenewalError):
    """Wraps :class:`AccountInitError` inside a per-domain renewal."""

    stage = RenewalStage.ACCOUNT
