"""Tests for certflux.challenge.registry."""

from __future__ import annotations

import pytest

from certflux.challenge.base import ChallengeError
from certflux.challenge.dns01 import Dns01Handler
from certflux.challenge.http01 import Http01Handler
from certflux.challenge.registry import ChallengeRegistry
from certflux.config.settings import build_settings
from certflux.core.types import ChallengeType
from certflux.models import Challenge


class TestChallengeRegistry:
    def test_http01_only_without_dns_provider(self):
        registry = ChallengeRegistry()
        assert registry.supported_types == frozenset({ChallengeType.HTTP_01})

    def test_dns01_with_provider(self, fake_dns):
        registry = ChallengeRegistry(dns_provider=fake_dns)
        assert registry.supported_types == frozenset({ChallengeType.DNS_01, ChallengeType.HTTP_01})
        assert isinstance(registry.build("dns-01"), Dns01Handler)

    def test_http01_uses_configured_webroot(self, tmp_path):
        settings = build_settings(
            {"acme": {}, "challenges": {"http01": {"webroot": str(tmp_path)}}},
        ).challenges
        handler = ChallengeRegistry(settings).build(ChallengeType.HTTP_01)
        challenge = Challenge(
            url="https://acme.test/chall/1",
            type=ChallengeType.HTTP_01,
            token="abc",
            key_authorization="abc.thumb",
        )

        assert isinstance(handler, Http01Handler)
        assert handler.token_path(challenge) == tmp_path / ".well-known" / "acme-challenge" / "abc"

    @pytest.mark.parametrize("challenge_type", ["tls-alpn-01", "dns-01"])
    def test_unsupported_type(self, challenge_type):
        with pytest.raises(ChallengeError, match="Unsupported"):
            ChallengeRegistry().build(challenge_type)
