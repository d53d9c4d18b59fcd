"""Enumerated types shared across the renewal pipeline.

All enums inherit from :class:`enum.StrEnum` so their ``.value`` is the
plain string the ACME server sends on the wire and comparisons against
raw JSON values work without conversion.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------


class OrderStatus(StrEnum):
    PENDING = "pending"
    READY = "ready"
    PROCESSING = "processing"
    VALID = "valid"
    INVALID = "invalid"


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


class AuthorizationStatus(StrEnum):
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"
    DEACTIVATED = "deactivated"
    EXPIRED = "expired"
    REVOKED = "revoked"


# ---------------------------------------------------------------------------
# Challenge
# ---------------------------------------------------------------------------


class ChallengeStatus(StrEnum):
    PENDING = "pending"
    PROCESSING = "processing"
    VALID = "valid"
    INVALID = "invalid"

    @property
    def is_terminal(self) -> bool:
        return self in (ChallengeStatus.VALID, ChallengeStatus.INVALID)


class ChallengeType(StrEnum):
    HTTP_01 = "http-01"
    DNS_01 = "dns-01"


# ---------------------------------------------------------------------------
# Renewal pipeline
# ---------------------------------------------------------------------------


class RenewalStage(StrEnum):
    """Pipeline stage a per-domain failure is attributed to."""

    CHECK = "check"
    ACCOUNT = "account"
    ORDER = "order"
    CHALLENGE = "challenge"
    FINALIZE = "finalize"
    PERSIST = "persist"
    DEPLOY = "deploy"
