"""Provider loading from configuration.

``providers.<role>.name`` is either a built-in name or
``ext:package.module.Class``.  External classes must subclass the
role's ABC and accept the ``config`` mapping as their only argument.

Usage::

    from certflux.providers.registry import load_cdn_provider, load_dns_provider

    dns = load_dns_provider(settings.providers.dns)
    cdn = load_cdn_provider(settings.providers.cdn)
"""

from __future__ import annotations

import importlib
import logging
from typing import TYPE_CHECKING, TypeVar

from certflux.core.errors import ProviderError
from certflux.providers.base import CdnProvider, DnsProvider

if TYPE_CHECKING:
    from certflux.config.settings import ProviderSettings

log = logging.getLogger(__name__)

_P = TypeVar("_P", DnsProvider, CdnProvider)

# Maps role → built-in name → (module_path, class_name)
_BUILTIN_PROVIDERS: dict[str, dict[str, tuple[str, str]]] = {
    "dns": {"callback": ("certflux.providers.callback", "CallbackDnsProvider")},
    "cdn": {"callback": ("certflux.providers.callback", "CallbackCdnProvider")},
}


def _import_class(module_path: str, cls_name: str, label: str) -> type:
    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)
    except (ImportError, AttributeError) as exc:
        msg = f"Failed to load provider '{label}': {exc}"
        raise ProviderError(msg) from exc


def _load(role: str, base: type[_P], settings: ProviderSettings) -> _P:
    name = settings.name
    if name.startswith("ext:"):
        fqn = name[4:]
        module_path, _, cls_name = fqn.rpartition(".")
        if not module_path:
            msg = (
                f"Invalid external provider '{fqn}': must be fully "
                "qualified (e.g. 'mypackage.module.ClassName')"
            )
            raise ProviderError(msg)
        cls = _import_class(module_path, cls_name, name)
    elif name in _BUILTIN_PROVIDERS[role]:
        cls = _import_class(*_BUILTIN_PROVIDERS[role][name], name)
    else:
        msg = f"Unknown {role} provider '{name}'"
        raise ProviderError(msg)

    if not (isinstance(cls, type) and issubclass(cls, base)):
        msg = f"Provider '{name}' must be a subclass of {base.__name__}"
        raise ProviderError(msg)

    provider = cls(settings.config)
    log.info("Loaded %s provider: %s", role, name)
    return provider


def load_dns_provider(settings: ProviderSettings) -> DnsProvider:
    return _load("dns", DnsProvider, settings)


def load_cdn_provider(settings: ProviderSettings) -> CdnProvider:
    return _load("cdn", CdnProvider, settings)
