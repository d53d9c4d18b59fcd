"""Certificate entities: live endpoint status, issued and persisted material."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from certflux.core.crypto import private_key_pem, serial_hex, serialize_pem_chain

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from cryptography import x509
    from cryptography.hazmat.primitives.asymmetric import rsa


@dataclass(frozen=True)
class DomainCertificateStatus:
    """Validity window of the certificate currently served for a host.

    ``not_after`` is ``None`` when no certificate is deployed.
    """

    hostname: str
    not_before: datetime | None = None
    not_after: datetime | None = None


@dataclass(frozen=True)
class IssuedCertificate:
    """A freshly issued chain (leaf first) with its private key."""

    domains: tuple[str, ...]
    chain: tuple[x509.Certificate, ...]
    private_key: rsa.RSAPrivateKey

    @property
    def leaf(self) -> x509.Certificate:
        return self.chain[0]

    @property
    def serial_hex(self) -> str:
        return serial_hex(self.leaf)

    @property
    def not_before(self) -> datetime:
        return self.leaf.not_valid_before_utc

    @property
    def not_after(self) -> datetime:
        return self.leaf.not_valid_after_utc

    @property
    def pem_chain(self) -> str:
        return serialize_pem_chain(self.chain)

    @property
    def pem_key(self) -> str:
        return private_key_pem(self.private_key).decode("ascii")


@dataclass(frozen=True)
class PersistedCertificate:
    domain: str
    cert_path: Path
    key_path: Path
    timestamp: str
