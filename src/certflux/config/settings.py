"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from certflux.config import get_config

    renewal = get_config().settings.renewal
    print(renewal.renew_before_days, renewal.validity_days)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

LETS_ENCRYPT_DIRECTORY = "https://acme-v02.api.letsencrypt.org/directory"

# ---------------------------------------------------------------------------
# ACME
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AcmeSettings:
    """CA directory, account contact and on-disk account state."""

    directory_url: str
    contact_email: str
    keystore_path: str
    keystore_password: str
    account_file: str
    user_agent: str
    verify_ssl: bool
    key_size: int
    finalize_timeout_seconds: int


def _build_acme(data: dict | None) -> AcmeSettings:
    d = data or {}
    return AcmeSettings(
        directory_url=d.get("directory_url", LETS_ENCRYPT_DIRECTORY),
        contact_email=d["contact_email"],
        keystore_path=d.get("keystore_path", "acme_account.p12"),
        keystore_password=d.get("keystore_password", "changeit"),
        account_file=d.get("account_file", "acme_account.properties"),
        user_agent=d.get("user_agent", "certflux"),
        verify_ssl=d.get("verify_ssl", True),
        key_size=d.get("key_size", 2048),
        finalize_timeout_seconds=d.get("finalize_timeout_seconds", 90),
    )


# ---------------------------------------------------------------------------
# Challenges
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Http01Settings:
    webroot: str


@dataclass(frozen=True)
class Dns01Settings:
    """Optional propagation check run after the TXT record is created."""

    propagation_checks: int
    propagation_interval_seconds: float
    resolvers: tuple[str, ...]
    timeout_seconds: float


@dataclass(frozen=True)
class ChallengeSettings:
    preferred_type: str
    settle_delay_seconds: float
    max_attempts: int
    backoff_base_seconds: float
    backoff_growth: float
    http01: Http01Settings
    dns01: Dns01Settings


def _build_http01(data: dict | None) -> Http01Settings:
    d = data or {}
    return Http01Settings(webroot=d.get("webroot", "/var/www"))


def _build_dns01(data: dict | None) -> Dns01Settings:
    d = data or {}
    return Dns01Settings(
        propagation_checks=d.get("propagation_checks", 0),
        propagation_interval_seconds=d.get("propagation_interval_seconds", 10.0),
        resolvers=tuple(d.get("resolvers", [])),
        timeout_seconds=d.get("timeout_seconds", 10.0),
    )


def _build_challenges(data: dict | None) -> ChallengeSettings:
    d = data or {}
    return ChallengeSettings(
        preferred_type=d.get("preferred_type", "dns-01"),
        settle_delay_seconds=d.get("settle_delay_seconds", 3.0),
        max_attempts=d.get("max_attempts", 5),
        backoff_base_seconds=d.get("backoff_base_seconds", 10.0),
        backoff_growth=d.get("backoff_growth", 1.5),
        http01=_build_http01(d.get("http01")),
        dns01=_build_dns01(d.get("dns01")),
    )


# ---------------------------------------------------------------------------
# Renewal
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RenewalSettings:
    renew_before_days: int
    validity_days: int
    interval_seconds: int
    max_workers: int
    cert_dir: str
    cert_name_prefix: str
    key_size: int


def build_renewal_settings(data: dict | None = None) -> RenewalSettings:
    """Build :class:`RenewalSettings`; every key missing from *data* takes its default."""
    d = data or {}
    return RenewalSettings(
        renew_before_days=d.get("renew_before_days", 15),
        validity_days=d.get("validity_days", 90),
        interval_seconds=d.get("interval_seconds", 86400),
        max_workers=d.get("max_workers", 1),
        cert_dir=d.get("cert_dir", "certs"),
        cert_name_prefix=d.get("cert_name_prefix", "certflux"),
        key_size=d.get("key_size", 2048),
    )


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderSettings:
    """Provider selection: a built-in name or ``ext:package.module.Class``."""

    name: str
    config: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProvidersSettings:
    dns: ProviderSettings
    cdn: ProviderSettings


def _build_provider(data: dict | None) -> ProviderSettings:
    d = data or {}
    return ProviderSettings(
        name=d.get("name", "callback"),
        config=dict(d.get("config") or {}),
    )


def _build_providers(data: dict | None) -> ProvidersSettings:
    d = data or {}
    return ProvidersSettings(
        dns=_build_provider(d.get("dns")),
        cdn=_build_provider(d.get("cdn")),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    level: str
    format: str


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "text"),
    )


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CertfluxSettings:
    acme: AcmeSettings
    challenges: ChallengeSettings
    renewal: RenewalSettings
    providers: ProvidersSettings
    logging: LoggingSettings


def build_settings(data: dict) -> CertfluxSettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`CertfluxConfig` initialization after
    environment-variable resolution and schema validation.
    """
    return CertfluxSettings(
        acme=_build_acme(data.get("acme")),
        challenges=_build_challenges(data.get("challenges")),
        renewal=build_renewal_settings(data.get("renewal")),
        providers=_build_providers(data.get("providers")),
        logging=_build_logging(data.get("logging")),
    )
