"""Read the validity window of the certificate a host currently serves.

The probe completes a TLS handshake without verifying the peer: an
expired or self-signed certificate is exactly what it needs to see.
Any connection failure is reported as "no certificate".
"""

from __future__ import annotations

import logging
import socket
import ssl

from cryptography import x509

from certflux.models import DomainCertificateStatus

log = logging.getLogger(__name__)

DEFAULT_TLS_PORT = 443


def _unverified_context() -> ssl.SSLContext:
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def probe_certificate_status(
    hostname: str,
    port: int = DEFAULT_TLS_PORT,
    timeout: float = 10.0,
) -> DomainCertificateStatus:
    """Connect to *hostname*:*port* and read the leaf certificate validity.

    A leading ``.`` (CDN wildcard notation) is stripped before
    connecting.  On any network or TLS error the returned status has
    ``not_before`` and ``not_after`` set to ``None``.
    """
    target = hostname.lstrip(".")
    try:
        with (
            socket.create_connection((target, port), timeout=timeout) as sock,
            _unverified_context().wrap_socket(sock, server_hostname=target) as tls,
        ):
            der = tls.getpeercert(binary_form=True)
    except (OSError, ssl.SSLError) as exc:
        log.info("No certificate readable for %s:%d (%s)", target, port, exc)
        return DomainCertificateStatus(hostname=hostname)

    if not der:
        return DomainCertificateStatus(hostname=hostname)

    cert = x509.load_der_x509_certificate(der)
    return DomainCertificateStatus(
        hostname=hostname,
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
    )
