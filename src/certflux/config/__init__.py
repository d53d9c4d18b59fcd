"""Configuration subsystem for certflux.

Public API::

    from certflux.config import get_config, CertfluxConfig

    # At startup (CLI only):
    CertfluxConfig(config_file="config.yaml")

    # Everywhere else:
    cfg = get_config()
    days = cfg.settings.renewal.renew_before_days   # typed access
"""

from certflux.config.certflux_config import (
    CertfluxConfig,
    ConfigValidationError,
    get_config,
)
from certflux.config.settings import (
    AcmeSettings,
    CertfluxSettings,
    ChallengeSettings,
    Dns01Settings,
    Http01Settings,
    LoggingSettings,
    ProviderSettings,
    ProvidersSettings,
    RenewalSettings,
    build_renewal_settings,
    build_settings,
)

__all__ = [
    "AcmeSettings",
    "CertfluxConfig",
    "CertfluxSettings",
    "ChallengeSettings",
    "ConfigValidationError",
    "Dns01Settings",
    "Http01Settings",
    "LoggingSettings",
    "ProviderSettings",
    "ProvidersSettings",
    "RenewalSettings",
    "build_renewal_settings",
    "build_settings",
    "get_config",
]
