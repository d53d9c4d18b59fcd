"""Account entities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from certflux.core.crypto import public_key_fingerprint

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric import rsa


@dataclass(frozen=True)
class AccountKeyMaterial:
    """The account's RSA key pair."""

    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey
    algorithm: str = "RSA"
    key_size: int = 2048

    @classmethod
    def from_private_key(cls, private_key: rsa.RSAPrivateKey) -> AccountKeyMaterial:
        return cls(
            private_key=private_key,
            public_key=private_key.public_key(),
            key_size=private_key.key_size,
        )

    @property
    def fingerprint(self) -> str:
        return public_key_fingerprint(self.public_key)


@dataclass(frozen=True)
class AccountRecord:
    """Persisted pointer to the CA-side account."""

    account_url: str
    key_fingerprint: str


@dataclass(frozen=True)
class Account:
    url: str
    key: AccountKeyMaterial
