"""certflux configuration loader.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    CertfluxConfig(config_file="/etc/certflux/config.yaml")

    # 2. Any module retrieves it afterwards
    from certflux.config import get_config
    cfg = get_config()
    cfg.settings.renewal.renew_before_days  # typed access

    # 3. Dynamic access
    cfg.get("providers.cdn.config.domains", default=[])

Loading order: parse YAML/JSON, resolve ``${VAR}`` references, validate
against the bundled JSON Schema, run cross-field checks, then build the
frozen settings tree.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import jsonschema
import yaml

from certflux.config.settings import CertfluxSettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_CLASS_PATH_RE = re.compile(
    r"^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)+$",
)

_BUILTIN_PROVIDERS = frozenset({"callback"})

_MIN_ACME_VALIDITY_DAYS = 7

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: CertfluxConfig | None = None


def get_config() -> CertfluxConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`CertfluxConfig` has not been
    created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "CertfluxConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when schema or cross-field validation finds problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


def _read_file(path: Path) -> dict:
    """Parse a YAML or JSON config file into a dict."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        msg = f"Cannot read configuration file {path}: {exc}"
        raise ConfigValidationError([msg]) from exc

    try:
        data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        msg = f"Cannot parse configuration file {path}: {exc}"
        raise ConfigValidationError([msg]) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"Configuration root must be a mapping, got {type(data).__name__}"
        raise ConfigValidationError([msg])
    return data


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class CertfluxConfig:
    """Central configuration for certflux.

    The JSON schema is bundled at ``config/schema.json``; users supply
    only ``config_file``.  After construction the typed settings tree is
    available at :pyattr:`settings` and the raw dict via
    :pyattr:`data` / :pymeth:`get`.
    """

    def __init__(self, *, config_file: str | Path) -> None:
        """Load, validate and publish the configuration singleton.

        Parameters
        ----------
        config_file:
            Path to the YAML/JSON configuration file.

        Raises
        ------
        ConfigValidationError
            If the file cannot be read, fails schema validation, or
            fails cross-field checks.

        """
        global _instance  # noqa: PLW0603

        self.config_file = Path(config_file)
        self._data = _read_file(self.config_file)

        # Env vars first so substituted values are checked against the schema.
        _resolve_env_vars(self._data)
        self._validate_schema()
        self.additional_checks()

        self._settings: CertfluxSettings = build_settings(self._data)
        _instance = self

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton (tests only)."""
        global _instance  # noqa: PLW0603
        _instance = None

    # -- access -------------------------------------------------------------

    @property
    def data(self) -> dict:
        return self._data

    @property
    def settings(self) -> CertfluxSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    def get(self, dotted_path: str, default: Any = None) -> Any:  # noqa: ANN401
        """Look up a raw value by dotted path, e.g. ``"renewal.max_workers"``."""
        node: Any = self._data
        for part in dotted_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    # -- validation ---------------------------------------------------------

    def _validate_schema(self) -> None:
        schema = json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))
        validator = jsonschema.Draft202012Validator(schema)
        errors = sorted(validator.iter_errors(self._data), key=lambda e: list(e.path))
        if errors:
            raise ConfigValidationError(
                [
                    f"{'.'.join(str(p) for p in err.path) or '<root>'}: {err.message}"
                    for err in errors
                ],
            )

    def additional_checks(self) -> None:
        """Semantic and cross-field validation run after schema validation."""
        errors: list[str] = []
        warnings: list[str] = []

        acme = self._data.get("acme") or {}
        challenges = self._data.get("challenges") or {}
        renewal = self._data.get("renewal") or {}
        providers = self._data.get("providers") or {}

        # -- acme --
        email = acme.get("contact_email", "")
        if email and not _EMAIL_RE.match(email.removeprefix("mailto:")):
            errors.append(f"acme.contact_email '{email}' is not a valid email address")

        directory_url = acme.get("directory_url", "")
        if directory_url and not directory_url.startswith("https://"):
            warnings.append(
                f"acme.directory_url '{directory_url}' is not HTTPS; "
                "only use plain HTTP against a local test CA",
            )

        if acme.get("keystore_password", "changeit") == "changeit":
            warnings.append(
                "acme.keystore_password uses the default value; "
                "set it to protect the account key at rest",
            )

        # -- renewal --
        renew_before = renewal.get("renew_before_days", 15)
        validity = renewal.get("validity_days", 90)
        if renew_before >= validity:
            errors.append(
                f"renewal.renew_before_days ({renew_before}) must be smaller than "
                f"renewal.validity_days ({validity}), otherwise every cycle renews",
            )
        if validity < _MIN_ACME_VALIDITY_DAYS:
            warnings.append(
                f"renewal.validity_days={validity} is unusually short; most CAs "
                "will reject the requested window and fall back to their default",
            )

        # -- challenges --
        preferred = challenges.get("preferred_type", "dns-01")
        if preferred == "http-01" and not (challenges.get("http01") or {}).get("webroot"):
            warnings.append(
                "challenges.preferred_type is http-01 but challenges.http01.webroot "
                "is not set; the default /var/www will be used",
            )

        # -- providers --
        for role in ("dns", "cdn"):
            entry = providers.get(role) or {}
            name = entry.get("name", "callback")
            if name.startswith("ext:"):
                if not _CLASS_PATH_RE.match(name[4:]):
                    errors.append(
                        f"providers.{role}.name '{name}' must be 'ext:' followed by "
                        "a fully qualified class path",
                    )
            elif name not in _BUILTIN_PROVIDERS:
                errors.append(
                    f"providers.{role}.name '{name}' is unknown; use one of "
                    f"{sorted(_BUILTIN_PROVIDERS)} or 'ext:package.module.Class'",
                )

        cdn = providers.get("cdn") or {}
        if cdn.get("name", "callback") == "callback":
            cfg = cdn.get("config") or {}
            if not cfg.get("deploy_script"):
                errors.append("providers.cdn.config.deploy_script is required for 'callback'")
            if not cfg.get("domains"):
                warnings.append(
                    "providers.cdn.config.domains is empty; no domain will be renewed",
                )

        dns_cfg = providers.get("dns") or {}
        if dns_cfg.get("name", "callback") == "callback" and preferred == "dns-01":
            cfg = dns_cfg.get("config") or {}
            for key in ("create_script", "delete_script"):
                if not cfg.get(key):
                    errors.append(f"providers.dns.config.{key} is required for 'callback'")

        for warning in warnings:
            log.warning("Config: %s", warning)

        if errors:
            raise ConfigValidationError(errors)
