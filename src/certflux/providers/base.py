"""Provider interfaces for DNS record management and CDN deployment.

Vendor integrations implement these two ABCs.  Built-in
implementations drive operator-supplied scripts
(:mod:`certflux.providers.callback`); custom classes are loaded with
``ext:package.module.Class`` (:mod:`certflux.providers.registry`).
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Any

from certflux.providers.propagation import txt_record_present

if TYPE_CHECKING:
    from collections.abc import Sequence

    from certflux.models import DomainCertificateStatus


class DnsProvider(abc.ABC):
    """Creates and removes ``_acme-challenge`` TXT records.

    Parameters
    ----------
    config:
        The ``providers.dns.config`` mapping from settings.

    """

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        self.config = config or {}

    @abc.abstractmethod
    def add_txt_record(self, record_name: str, value: str) -> None:
        """Publish a TXT record.  Raise :class:`ProviderError` on failure."""

    @abc.abstractmethod
    def remove_txt_record(self, record_name: str) -> None:
        """Remove the TXT record.  Raise :class:`ProviderError` on failure."""

    def check_propagation(
        self,
        record_name: str,
        value: str,
        *,
        resolvers: Sequence[str] = (),
        timeout: float = 10.0,
    ) -> bool:
        """Whether resolvers already serve *value* at *record_name*.

        Providers with an authoritative API may override this to ask the
        vendor directly.
        """
        return txt_record_present(record_name, value, resolvers=resolvers, timeout=timeout)


class CdnProvider(abc.ABC):
    """Lists managed domains and deploys certificates to the CDN edge."""

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        self.config = config or {}

    @abc.abstractmethod
    def list_managed_domains(self) -> list[DomainCertificateStatus]:
        """Return every managed host with its live certificate validity."""

    @abc.abstractmethod
    def deploy_certificate(
        self,
        domain: str,
        cert_name: str,
        pem_chain: str,
        pem_key: str,
    ) -> bool:
        """Upload and activate a certificate for *domain*.

        Returns ``True`` when the CDN accepted the certificate.
        """
