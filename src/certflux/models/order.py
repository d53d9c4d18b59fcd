"""Order and authorization entities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from certflux.core.types import AuthorizationStatus, OrderStatus

if TYPE_CHECKING:
    from certflux.models.challenge import Challenge


@dataclass(frozen=True)
class Authorization:
    url: str
    domain: str
    status: AuthorizationStatus
    challenges: tuple[Challenge, ...] = ()

    def find_challenge(self, challenge_type: str) -> Challenge | None:
        """Return the first offered challenge of *challenge_type*."""
        for challenge in self.challenges:
            if challenge.type == challenge_type:
                return challenge
        return None

    @property
    def offered_types(self) -> tuple[str, ...]:
        return tuple(str(c.type) for c in self.challenges)


@dataclass(frozen=True)
class Order:
    url: str
    domains: tuple[str, ...]
    status: OrderStatus
    finalize_url: str
    authorization_urls: tuple[str, ...] = ()
    requested_validity_days: int | None = None
