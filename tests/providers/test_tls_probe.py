"""Tests for the TLS certificate probe."""

from __future__ import annotations

import ssl
from datetime import timedelta
from unittest.mock import MagicMock, patch

from cryptography.hazmat.primitives import serialization

from certflux.providers.tls_probe import probe_certificate_status


def _tls_context_serving(der: bytes | None) -> MagicMock:
    ctx = MagicMock()
    tls = ctx.wrap_socket.return_value.__enter__.return_value
    tls.getpeercert.return_value = der
    return ctx


class TestProbeCertificateStatus:
    def test_reads_leaf_validity(self, issue_certificate, now):
        issued = issue_certificate("www.example.com", not_after=now + timedelta(days=12))
        der = issued.leaf.public_bytes(serialization.Encoding.DER)

        with (
            patch("certflux.providers.tls_probe.socket.create_connection") as connect,
            patch(
                "certflux.providers.tls_probe._unverified_context",
                return_value=_tls_context_serving(der),
            ),
        ):
            status = probe_certificate_status("www.example.com", port=8443, timeout=2)

        connect.assert_called_once_with(("www.example.com", 8443), timeout=2)
        assert status.hostname == "www.example.com"
        assert status.not_after == issued.not_after
        assert status.not_before == issued.not_before

    def test_leading_dot_is_stripped_for_connect(self):
        with (
            patch("certflux.providers.tls_probe.socket.create_connection") as connect,
            patch(
                "certflux.providers.tls_probe._unverified_context",
                return_value=_tls_context_serving(None),
            ),
        ):
            status = probe_certificate_status(".example.com")

        assert connect.call_args[0][0] == ("example.com", 443)
        assert status.hostname == ".example.com"
        assert status.not_after is None

    def test_connection_refused(self):
        with patch(
            "certflux.providers.tls_probe.socket.create_connection",
            side_effect=ConnectionRefusedError("refused"),
        ):
            status = probe_certificate_status("down.example.com")

        assert status.not_before is None
        assert status.not_after is None

    def test_handshake_failure(self):
        ctx = MagicMock()
        ctx.wrap_socket.side_effect = ssl.SSLError("handshake failure")
        with (
            patch("certflux.providers.tls_probe.socket.create_connection"),
            patch("certflux.providers.tls_probe._unverified_context", return_value=ctx),
        ):
            status = probe_certificate_status("broken.example.com")

        assert status.not_after is None
