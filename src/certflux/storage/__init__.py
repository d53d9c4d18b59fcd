"""Local persistence for issued certificates."""

from certflux.storage.certificates import CertificateStore

__all__ = ["CertificateStore"]
