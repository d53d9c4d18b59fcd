"""ACME challenge handlers.

Exports the abstract base class, the structured error type, the
cleanup scope and the registry.
"""

from certflux.challenge.base import ChallengeError, ChallengeHandler, prepared
from certflux.challenge.registry import ChallengeRegistry

__all__ = [
    "ChallengeError",
    "ChallengeHandler",
    "ChallengeRegistry",
    "prepared",
]
