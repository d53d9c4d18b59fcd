"""Abstract ACME transport.

The transport hides the wire protocol (directory discovery, nonces,
JWS signing) behind a small, synchronous interface expressed in
certflux models.  Every method raises
:class:`~certflux.core.errors.AcmeTransportError` when the CA rejects
a request or cannot be reached.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from cryptography.hazmat.primitives.asymmetric import rsa

    from certflux.models import Authorization, Challenge, Order


class AcmeTransport(abc.ABC):
    """Capability set the orchestrator needs from an ACME CA."""

    @abc.abstractmethod
    def register_account(self, key: rsa.RSAPrivateKey, contact_email: str) -> str:
        """Create (or recover) the account for *key*, agreeing to the ToS.

        Binds the transport to the account and returns its URL.
        """

    @abc.abstractmethod
    def bind_account(self, key: rsa.RSAPrivateKey, account_url: str) -> None:
        """Bind the transport to an existing account URL.

        Raises :class:`AcmeTransportError` if the CA does not recognise
        the account for *key*.
        """

    @abc.abstractmethod
    def new_order(
        self,
        domains: tuple[str, ...],
        not_after: datetime | None = None,
    ) -> Order:
        """Create an order for *domains*, optionally requesting ``notAfter``."""

    @abc.abstractmethod
    def fetch_authorization(self, url: str) -> Authorization:
        """Fetch an authorization and its offered challenges."""

    @abc.abstractmethod
    def fetch_challenge(self, challenge: Challenge) -> Challenge:
        """Return *challenge* refreshed with the CA's current status."""

    @abc.abstractmethod
    def trigger_challenge(self, challenge: Challenge) -> None:
        """Tell the CA the challenge response is in place."""

    @abc.abstractmethod
    def finalize_order(self, order: Order, csr_pem: bytes) -> str:
        """Submit the CSR, wait for issuance and return the PEM chain."""
