"""Tests for DNS-01 record naming and the TXT propagation check."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import dns.exception
import dns.resolver
import pytest

from certflux.providers.propagation import challenge_record_name, txt_record_present

_RESOLVER = "certflux.providers.propagation.dns.resolver.Resolver"


def _rdata(*segments: bytes):
    rdata = MagicMock()
    rdata.strings = segments
    return rdata


class TestChallengeRecordName:
    @pytest.mark.parametrize(
        ("domain", "expected"),
        [
            ("example.com", "_acme-challenge.example.com"),
            ("*.example.com", "_acme-challenge.example.com"),
            ("www.example.com", "_acme-challenge.www.example.com"),
        ],
    )
    def test_names(self, domain, expected):
        assert challenge_record_name(domain) == expected


class TestTxtRecordPresent:
    def test_matching_value(self):
        with patch(_RESOLVER) as resolver_cls:
            resolver_cls.return_value.resolve.return_value = [_rdata(b"other"), _rdata(b"digest")]
            assert txt_record_present("_acme-challenge.example.com", "digest")

        resolver_cls.return_value.resolve.assert_called_once_with("_acme-challenge.example.com", "TXT")

    def test_segmented_value(self):
        with patch(_RESOLVER) as resolver_cls:
            resolver_cls.return_value.resolve.return_value = [_rdata(b"dig", b"est")]
            assert txt_record_present("_acme-challenge.example.com", "digest")

    def test_stale_value(self):
        with patch(_RESOLVER) as resolver_cls:
            resolver_cls.return_value.resolve.return_value = [_rdata(b"old")]
            assert not txt_record_present("_acme-challenge.example.com", "digest")

    @pytest.mark.parametrize(
        "error",
        [dns.resolver.NXDOMAIN(), dns.resolver.NoAnswer(), dns.exception.Timeout()],
    )
    def test_lookup_failures_mean_not_propagated(self, error):
        with patch(_RESOLVER) as resolver_cls:
            resolver_cls.return_value.resolve.side_effect = error
            assert not txt_record_present("_acme-challenge.example.com", "digest")

    def test_custom_resolvers_and_timeout(self):
        with patch(_RESOLVER) as resolver_cls:
            resolver_cls.return_value.resolve.return_value = []
            txt_record_present(
                "_acme-challenge.example.com",
                "digest",
                resolvers=("1.1.1.1", "8.8.8.8"),
                timeout=3.0,
            )

        resolver = resolver_cls.return_value
        assert resolver.nameservers == ["1.1.1.1", "8.8.8.8"]
        assert resolver.lifetime == 3.0

    def test_system_resolver_by_default(self):
        with patch(_RESOLVER) as resolver_cls:
            sentinel = ["127.0.0.53"]
            resolver_cls.return_value.nameservers = sentinel
            resolver_cls.return_value.resolve.return_value = []
            txt_record_present("_acme-challenge.example.com", "digest")

        assert resolver_cls.return_value.nameservers is sentinel
