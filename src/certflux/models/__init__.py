"""Entity models for the renewal pipeline.

All models are frozen dataclasses.  Use :func:`dataclasses.replace`
for modifications (copy-on-write).
"""

from certflux.models.account import Account, AccountKeyMaterial, AccountRecord
from certflux.models.certificate import (
    DomainCertificateStatus,
    IssuedCertificate,
    PersistedCertificate,
)
from certflux.models.challenge import Challenge
from certflux.models.order import Authorization, Order

__all__ = [
    "Account",
    "AccountKeyMaterial",
    "AccountRecord",
    "Authorization",
    "Challenge",
    "DomainCertificateStatus",
    "IssuedCertificate",
    "Order",
    "PersistedCertificate",
]
