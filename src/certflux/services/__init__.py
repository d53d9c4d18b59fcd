"""Renewal service layer.

Each service owns one stage of the renewal pipeline and talks to the
CA only through an :class:`~certflux.acme.base.AcmeTransport`.
"""

from certflux.services.account import AccountStore
from certflux.services.challenge import ChallengeProcessor
from certflux.services.order import OrderClient
from certflux.services.renewal import CycleReport, DomainOutcome, RenewalScheduler
from certflux.services.renewal_worker import RenewalWorker

__all__ = [
    "AccountStore",
    "ChallengeProcessor",
    "CycleReport",
    "DomainOutcome",
    "OrderClient",
    "RenewalScheduler",
    "RenewalWorker",
]
