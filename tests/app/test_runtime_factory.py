"""Tests for certflux.app.factory (runtime wiring)."""

from __future__ import annotations

import threading
from unittest.mock import patch

import pytest

from certflux.app import create_runtime
from certflux.config.settings import build_settings
from certflux.core.types import ChallengeType
from certflux.metrics.collector import MetricsCollector
from certflux.providers.callback import CallbackCdnProvider, CallbackDnsProvider
from certflux.services.renewal_worker import RenewalWorker


@pytest.fixture()
def config_data(minimal_config_data, tmp_path):
    data = dict(minimal_config_data)
    data["acme"] = {
        **data["acme"],
        "keystore_path": str(tmp_path / "acme_account.p12"),
        "account_file": str(tmp_path / "acme_account.properties"),
    }
    data["renewal"] = {"cert_dir": str(tmp_path / "certs"), "interval_seconds": 7200}
    return data


class TestCreateRuntime:
    def test_default_wiring(self, config_data, fake_transport, tmp_path):
        runtime = create_runtime(build_settings(config_data), transport=fake_transport)

        assert runtime.transport is fake_transport
        assert isinstance(runtime.dns, CallbackDnsProvider)
        assert isinstance(runtime.cdn, CallbackCdnProvider)
        assert runtime.cert_store.directory == tmp_path / "certs"
        assert runtime.scheduler._preferred_type == ChallengeType.DNS_01
        assert ChallengeType.DNS_01 in runtime.scheduler._processor._registry.supported_types

    def test_http01_skips_dns_provider(self, config_data, fake_transport, tmp_path):
        config_data["challenges"] = {
            "preferred_type": "http-01",
            "http01": {"webroot": str(tmp_path / "www")},
        }
        config_data["providers"] = {"cdn": config_data["providers"]["cdn"]}

        runtime = create_runtime(build_settings(config_data), transport=fake_transport)

        assert runtime.dns is None
        assert runtime.scheduler._processor._registry.supported_types == frozenset({ChallengeType.HTTP_01})

    def test_components_share_stop_event_and_metrics(self, config_data, fake_transport):
        stop = threading.Event()
        metrics = MetricsCollector()

        runtime = create_runtime(
            build_settings(config_data),
            transport=fake_transport,
            stop_event=stop,
            metrics=metrics,
        )

        assert runtime.stop_event is stop
        assert runtime.metrics is metrics
        assert runtime.scheduler._metrics is metrics
        assert runtime.scheduler._processor._stop_event is stop

    def test_acme_client_transport_by_default(self, config_data):
        config_data["acme"]["verify_ssl"] = False
        with patch("certflux.app.factory.AcmeClientTransport") as transport_cls:
            runtime = create_runtime(build_settings(config_data))

        transport_cls.assert_called_once_with(
            "https://acme.test/directory",
            user_agent="certflux",
            verify_ssl=False,
            finalize_timeout_seconds=90,
        )
        assert runtime.transport is transport_cls.return_value

    def test_account_store_not_touched(self, config_data, fake_transport, tmp_path):
        create_runtime(build_settings(config_data), transport=fake_transport)
        assert not (tmp_path / "acme_account.p12").exists()

    def test_create_worker(self, config_data, fake_transport):
        runtime = create_runtime(build_settings(config_data), transport=fake_transport)

        worker = runtime.create_worker()

        assert isinstance(worker, RenewalWorker)
        assert worker._interval == 7200
        assert worker._stop_event is runtime.stop_event
        assert worker._metrics is runtime.metrics
