"""Tests for the typed settings builders."""

from __future__ import annotations

from certflux.config.settings import build_renewal_settings, build_settings


class TestBuildSettings:
    def test_empty_sections_use_defaults(self):
        s = build_settings({"acme": {"contact_email": "ops@example.com"}})

        assert s.acme.verify_ssl is True
        assert s.acme.key_size == 2048
        assert s.challenges.http01.webroot == "/var/www"
        assert s.challenges.dns01.propagation_checks == 0
        assert s.challenges.dns01.resolvers == ()
        assert s.renewal.max_workers == 1
        assert s.renewal.cert_name_prefix == "certflux"
        assert s.providers.dns.name == "callback"
        assert s.providers.cdn.config == {}
        assert s.logging.format == "text"

    def test_values_override_defaults(self):
        s = build_settings(
            {
                "acme": {"contact_email": "ops@example.com", "verify_ssl": False},
                "challenges": {
                    "preferred_type": "http-01",
                    "dns01": {"resolvers": ["1.1.1.1", "8.8.8.8"], "propagation_checks": 3},
                },
                "renewal": {"renew_before_days": 20, "max_workers": 4},
                "providers": {"cdn": {"name": "ext:pkg.mod.Cdn", "config": {"zone": "z1"}}},
                "logging": {"level": "DEBUG", "format": "json"},
            },
        )

        assert s.acme.verify_ssl is False
        assert s.challenges.preferred_type == "http-01"
        assert s.challenges.dns01.resolvers == ("1.1.1.1", "8.8.8.8")
        assert s.challenges.dns01.propagation_checks == 3
        assert s.renewal.renew_before_days == 20
        assert s.renewal.max_workers == 4
        assert s.providers.cdn.name == "ext:pkg.mod.Cdn"
        assert s.providers.cdn.config == {"zone": "z1"}
        assert s.logging.level == "DEBUG"

    def test_provider_config_is_copied(self):
        raw = {"zone": "z1"}
        s = build_settings({"acme": {}, "providers": {"dns": {"name": "callback", "config": raw}}})
        raw["zone"] = "changed"
        assert s.providers.dns.config == {"zone": "z1"}


class TestBuildRenewalSettings:
    def test_defaults(self):
        r = build_renewal_settings()
        assert r.renew_before_days == 15
        assert r.validity_days == 90
        assert r.interval_seconds == 86400
        assert r.key_size == 2048

    def test_matches_full_build(self):
        data = {"acme": {}, "renewal": {"cert_dir": "/srv/certs", "validity_days": 60}}
        assert build_renewal_settings(data["renewal"]) == build_settings(data).renewal
