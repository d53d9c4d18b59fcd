"""DNS and CDN provider interfaces, built-in adapters and loaders."""

from certflux.providers.base import CdnProvider, DnsProvider
from certflux.providers.registry import load_cdn_provider, load_dns_provider

__all__ = [
    "CdnProvider",
    "DnsProvider",
    "load_cdn_provider",
    "load_dns_provider",
]
