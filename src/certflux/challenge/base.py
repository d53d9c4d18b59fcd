"""Abstract base class for ACME challenge handlers.

A handler places the challenge response where the CA will look for it
(:meth:`ChallengeHandler.prepare`) and removes it afterwards
(:meth:`ChallengeHandler.cleanup`).  :func:`prepared` scopes the two so
cleanup runs exactly once on every path.
"""

from __future__ import annotations

import abc
import contextlib
import logging
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from collections.abc import Iterator

    from certflux.core.types import ChallengeType
    from certflux.models import Challenge

log = logging.getLogger(__name__)


class ChallengeError(Exception):
    """Raised by handlers when the challenge response cannot be placed."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class ChallengeHandler(abc.ABC):
    """Base class for challenge-type specific side effects."""

    challenge_type: ClassVar[ChallengeType]
    """The ACME challenge type this handler serves."""

    @abc.abstractmethod
    def resource_key(self, domain: str, challenge: Challenge) -> str:
        """Identify the external resource touched (record name, file path).

        Used to serialise concurrent work on the same resource.
        """

    @abc.abstractmethod
    def prepare(self, domain: str, challenge: Challenge) -> None:
        """Publish the challenge response.

        Must raise :class:`ChallengeError` on failure.
        """

    @abc.abstractmethod
    def cleanup(self, domain: str, challenge: Challenge) -> None:
        """Remove the challenge response.

        Best-effort: implementations log failures instead of raising.
        """


@contextlib.contextmanager
def prepared(
    handler: ChallengeHandler,
    domain: str,
    challenge: Challenge,
) -> Iterator[None]:
    """Run *handler*'s prepare, yield, then clean up exactly once.

    Cleanup also runs when ``prepare`` itself fails, since a partial
    publication may have happened.
    """
    try:
        handler.prepare(domain, challenge)
        yield
    finally:
        log.debug(
            "Cleaning up %s challenge",
            handler.challenge_type,
            extra={"domain": domain, "stage": "challenge"},
        )
        handler.cleanup(domain, challenge)
