"""Key, CSR and PEM helpers built on :mod:`cryptography`.

Shared by the account store, the order client and the certificate
store so every component serialises keys and chains the same way.
"""

from __future__ import annotations

import base64
import hashlib
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

if TYPE_CHECKING:
    from collections.abc import Sequence

_PEM_END = b"-----END CERTIFICATE-----"

DEFAULT_KEY_SIZE = 2048


def generate_rsa_key(key_size: int = DEFAULT_KEY_SIZE) -> rsa.RSAPrivateKey:
    """Generate a fresh RSA private key (public exponent 65537)."""
    return rsa.generate_private_key(public_exponent=65537, key_size=key_size)


def private_key_pem(key: rsa.RSAPrivateKey) -> bytes:
    """Unencrypted PKCS#8 PEM encoding of *key*."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def private_key_der(key: rsa.RSAPrivateKey) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def load_private_key_pem(data: bytes) -> rsa.RSAPrivateKey:
    """Load an unencrypted PEM private key, rejecting non-RSA keys."""
    key = serialization.load_pem_private_key(data, password=None)
    if not isinstance(key, rsa.RSAPrivateKey):
        msg = f"Expected an RSA private key, got {type(key).__name__}"
        raise ValueError(msg)
    return key


def public_key_fingerprint(public_key: rsa.RSAPublicKey) -> str:
    """SHA-256 hex digest of the DER SubjectPublicKeyInfo."""
    der = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return hashlib.sha256(der).hexdigest()


def dns_txt_digest(key_authorization: str) -> str:
    """Base64url (unpadded) SHA-256 digest of a key authorization."""
    digest = hashlib.sha256(key_authorization.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def build_csr(
    domains: Sequence[str],
    key: rsa.RSAPrivateKey,
) -> x509.CertificateSigningRequest:
    """Build a CSR for *domains* signed with *key*.

    The first domain becomes the subject common name; every domain is
    listed in the subjectAltName extension.
    """
    if not domains:
        msg = "A CSR needs at least one domain"
        raise ValueError(msg)
    return (
        x509.CertificateSigningRequestBuilder()
        .subject_name(
            x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domains[0])]),
        )
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(d) for d in domains]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )


def csr_pem(csr: x509.CertificateSigningRequest) -> bytes:
    return csr.public_bytes(serialization.Encoding.PEM)


def parse_pem_chain(pem: str | bytes) -> tuple[x509.Certificate, ...]:
    """Parse a concatenated PEM chain, preserving order.

    Raises
    ------
    ValueError
        If *pem* contains no certificate.

    """
    data = pem.encode("ascii") if isinstance(pem, str) else pem
    if _PEM_END not in data:
        msg = "No PEM certificate found in chain"
        raise ValueError(msg)
    return tuple(x509.load_pem_x509_certificates(data))


def serialize_pem_chain(chain: Sequence[x509.Certificate]) -> str:
    """Concatenate *chain* into a single PEM string (leaf first)."""
    return "".join(
        cert.public_bytes(serialization.Encoding.PEM).decode("ascii") for cert in chain
    )


def serial_hex(cert: x509.Certificate) -> str:
    return format(cert.serial_number, "x")
