"""Challenge entity."""

from __future__ import annotations

from dataclasses import dataclass

from certflux.core.crypto import dns_txt_digest
from certflux.core.types import ChallengeStatus, ChallengeType


@dataclass(frozen=True)
class Challenge:
    url: str
    type: ChallengeType | str
    token: str
    key_authorization: str
    status: ChallengeStatus = ChallengeStatus.PENDING
    error: str | None = None

    @property
    def dns_digest(self) -> str:
        """TXT record value expected for a DNS-01 challenge."""
        return dns_txt_digest(self.key_authorization)
