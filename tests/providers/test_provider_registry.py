"""Tests for certflux.providers.registry."""

from __future__ import annotations

import sys
import types

import pytest

from certflux.config.settings import ProviderSettings
from certflux.core.errors import ProviderError
from certflux.providers.base import CdnProvider, DnsProvider
from certflux.providers.callback import CallbackCdnProvider, CallbackDnsProvider
from certflux.providers.registry import load_cdn_provider, load_dns_provider


class _VendorDns(DnsProvider):
    def add_txt_record(self, record_name, value):
        pass

    def remove_txt_record(self, record_name):
        pass


class _NotAProvider:
    def __init__(self, config):
        self.config = config


@pytest.fixture()
def vendor_module(monkeypatch):
    module = types.ModuleType("certflux_vendor_ext")
    module.VendorDns = _VendorDns
    module.NotAProvider = _NotAProvider
    monkeypatch.setitem(sys.modules, "certflux_vendor_ext", module)
    return module


class TestBuiltinProviders:
    def test_callback_dns(self):
        provider = load_dns_provider(
            ProviderSettings(name="callback", config={"create_script": "/a", "delete_script": "/b"}),
        )
        assert isinstance(provider, CallbackDnsProvider)
        assert provider.config["create_script"] == "/a"

    def test_callback_cdn(self):
        provider = load_cdn_provider(
            ProviderSettings(name="callback", config={"deploy_script": "/c"}),
        )
        assert isinstance(provider, CallbackCdnProvider)

    def test_unknown_name(self):
        with pytest.raises(ProviderError, match="Unknown dns provider 'route53'"):
            load_dns_provider(ProviderSettings(name="route53"))

    def test_provider_config_errors_propagate(self):
        with pytest.raises(ProviderError, match="deploy_script"):
            load_cdn_provider(ProviderSettings(name="callback"))


class TestExternalProviders:
    def test_ext_class(self, vendor_module):
        provider = load_dns_provider(
            ProviderSettings(name="ext:certflux_vendor_ext.VendorDns", config={"token": "x"}),
        )
        assert isinstance(provider, _VendorDns)
        assert provider.config == {"token": "x"}

    def test_not_fully_qualified(self):
        with pytest.raises(ProviderError, match="must be fully qualified"):
            load_dns_provider(ProviderSettings(name="ext:VendorDns"))

    def test_missing_module(self):
        with pytest.raises(ProviderError, match="Failed to load provider"):
            load_dns_provider(ProviderSettings(name="ext:certflux_no_such_module.Dns"))

    def test_missing_class(self, vendor_module):
        with pytest.raises(ProviderError, match="Failed to load provider"):
            load_dns_provider(ProviderSettings(name="ext:certflux_vendor_ext.Missing"))

    def test_wrong_base_class(self, vendor_module):
        with pytest.raises(ProviderError, match="subclass of DnsProvider"):
            load_dns_provider(ProviderSettings(name="ext:certflux_vendor_ext.NotAProvider"))

    def test_role_mismatch(self, vendor_module):
        with pytest.raises(ProviderError, match="subclass of CdnProvider"):
            load_cdn_provider(ProviderSettings(name="ext:certflux_vendor_ext.VendorDns"))

    def test_abstract_bases_are_importable(self):
        assert issubclass(_VendorDns, DnsProvider)
        assert not issubclass(_VendorDns, CdnProvider)
