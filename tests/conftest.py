"""Root conftest for the certflux test suite."""

from __future__ import annotations

import dataclasses
import logging
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from cryptography import x509  # noqa: E402
from cryptography.hazmat.primitives import hashes, serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import rsa  # noqa: E402
from cryptography.x509.oid import NameOID  # noqa: E402

from certflux.acme.base import AcmeTransport  # noqa: E402
from certflux.core.errors import AcmeTransportError  # noqa: E402
from certflux.core.types import (  # noqa: E402
    AuthorizationStatus,
    ChallengeStatus,
    ChallengeType,
    OrderStatus,
)
from certflux.models import (  # noqa: E402
    Authorization,
    Challenge,
    DomainCertificateStatus,
    Order,
)
from certflux.providers.base import CdnProvider, DnsProvider  # noqa: E402

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture()
def now() -> datetime:
    """Fixed "current" time shared by the fakes and the clocks under test."""
    return NOW


# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a dict containing the minimum required config fields."""
    return {
        "acme": {
            "directory_url": "https://acme.test/directory",
            "contact_email": "ops@example.com",
            "keystore_password": "s3cret",
        },
        "providers": {
            "dns": {
                "name": "callback",
                "config": {
                    "create_script": "/usr/local/bin/dns-add",
                    "delete_script": "/usr/local/bin/dns-del",
                },
            },
            "cdn": {
                "name": "callback",
                "config": {
                    "deploy_script": "/usr/local/bin/cdn-deploy",
                    "domains": ["www.example.com"],
                },
            },
        },
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# Config singleton cleanup (autouse so every test gets a fresh slate)
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the CertfluxConfig singleton before and after every test."""
    from certflux.config.certflux_config import CertfluxConfig

    CertfluxConfig.reset()
    yield
    CertfluxConfig.reset()


@pytest.fixture(autouse=True)
def restore_certflux_logger():
    """Undo ``configure_logging`` so caplog keeps seeing certflux records."""
    logger = logging.getLogger("certflux")
    saved = (logger.level, list(logger.handlers), logger.propagate)
    yield
    logger.setLevel(saved[0])
    logger.handlers[:] = saved[1]
    logger.propagate = saved[2]


# ---------------------------------------------------------------------------
# Keys and certificates
# ---------------------------------------------------------------------------


def _new_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ca_key() -> rsa.RSAPrivateKey:
    return _new_key()


@pytest.fixture(scope="session")
def account_key() -> rsa.RSAPrivateKey:
    return _new_key()


@pytest.fixture(scope="session")
def other_key() -> rsa.RSAPrivateKey:
    return _new_key()


@pytest.fixture(scope="session")
def domain_key() -> rsa.RSAPrivateKey:
    return _new_key()


@pytest.fixture(scope="session")
def ca_cert(ca_key) -> x509.Certificate:
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "certflux test CA")])
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(ca_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(NOW - timedelta(days=365))
        .not_valid_after(NOW + timedelta(days=3650))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(ca_key, hashes.SHA256())
    )


def sign_leaf(
    ca_key: rsa.RSAPrivateKey,
    ca_cert: x509.Certificate,
    public_key,
    domains,
    *,
    not_before: datetime,
    not_after: datetime,
) -> x509.Certificate:
    """Issue a leaf for *domains* signed by the test CA."""
    return (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domains[0])]))
        .issuer_name(ca_cert.subject)
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(d) for d in domains]),
            critical=False,
        )
        .sign(ca_key, hashes.SHA256())
    )


@pytest.fixture()
def issue_certificate(ca_key, ca_cert, domain_key):
    """Factory building an :class:`IssuedCertificate` with a chosen window."""
    from certflux.models import IssuedCertificate

    def _issue(
        domain: str = "example.com",
        *,
        not_before: datetime | None = None,
        not_after: datetime | None = None,
        key: rsa.RSAPrivateKey | None = None,
    ) -> IssuedCertificate:
        key = key or domain_key
        not_before = not_before or NOW - timedelta(days=1)
        not_after = not_after or NOW + timedelta(days=90)
        leaf = sign_leaf(
            ca_key,
            ca_cert,
            key.public_key(),
            [domain],
            not_before=not_before,
            not_after=not_after,
        )
        return IssuedCertificate(domains=(domain,), chain=(leaf, ca_cert), private_key=key)

    return _issue


# ---------------------------------------------------------------------------
# Fake ACME transport
# ---------------------------------------------------------------------------


class FakeTransport(AcmeTransport):
    """In-memory CA that issues real certificates from the submitted CSR.

    Every authorization offers both ``dns-01`` and ``http-01``.
    Challenges are ``pending`` until triggered, then report
    ``trigger_result`` (``valid`` by default).
    """

    def __init__(self, ca_key, ca_cert, *, validity_days: int = 90) -> None:
        self._ca_key = ca_key
        self._ca_cert = ca_cert
        self.validity_days = validity_days
        self.now = NOW
        self.registered: list[str] = []
        self.bound: list[str] = []
        self.bind_error: AcmeTransportError | None = None
        self.register_error: AcmeTransportError | None = None
        self.order_errors: list[AcmeTransportError] = []
        self.order_calls: list[tuple[tuple[str, ...], datetime | None]] = []
        self.authz_status = AuthorizationStatus.PENDING
        self.offered_types = (ChallengeType.DNS_01, ChallengeType.HTTP_01)
        self.triggered: list[Challenge] = []
        self.trigger_result = ChallengeStatus.VALID
        self.finalize_error: AcmeTransportError | None = None
        self.csrs: list[x509.CertificateSigningRequest] = []
        self.events: list[str] = []

    # -- account --

    def register_account(self, key, contact_email: str) -> str:
        if self.register_error is not None:
            raise self.register_error
        url = f"https://acme.test/acct/{len(self.registered) + 1}"
        self.registered.append(url)
        self.events.append("register")
        return url

    def bind_account(self, key, account_url: str) -> None:
        if self.bind_error is not None:
            raise self.bind_error
        self.bound.append(account_url)
        self.events.append("bind")

    # -- orders --

    def new_order(self, domains, not_after=None) -> Order:
        domains = tuple(domains)
        self.order_calls.append((domains, not_after))
        self.events.append("order")
        if self.order_errors:
            raise self.order_errors.pop(0)
        n = len(self.order_calls)
        return Order(
            url=f"https://acme.test/order/{n}",
            domains=domains,
            status=OrderStatus.PENDING,
            finalize_url=f"https://acme.test/order/{n}/finalize",
            authorization_urls=tuple(f"https://acme.test/authz/{d}" for d in domains),
        )

    def fetch_authorization(self, url: str) -> Authorization:
        domain = url.rsplit("/", 1)[-1]
        challenges = tuple(
            Challenge(
                url=f"https://acme.test/chall/{domain}/{t}",
                type=t,
                token=f"token-{t}",
                key_authorization=f"token-{t}.thumbprint",
            )
            for t in self.offered_types
        )
        return Authorization(url=url, domain=domain, status=self.authz_status, challenges=challenges)

    def fetch_challenge(self, challenge: Challenge) -> Challenge:
        if any(c.url == challenge.url for c in self.triggered):
            return dataclasses.replace(challenge, status=self.trigger_result)
        return dataclasses.replace(challenge, status=ChallengeStatus.PENDING)

    def trigger_challenge(self, challenge: Challenge) -> None:
        self.triggered.append(challenge)
        self.events.append(f"trigger:{challenge.type}")

    def finalize_order(self, order: Order, csr_pem: bytes) -> str:
        self.events.append("finalize")
        if self.finalize_error is not None:
            raise self.finalize_error
        csr = x509.load_pem_x509_csr(csr_pem)
        self.csrs.append(csr)
        leaf = sign_leaf(
            self._ca_key,
            self._ca_cert,
            csr.public_key(),
            list(order.domains),
            not_before=self.now - timedelta(minutes=5),
            not_after=self.now + timedelta(days=self.validity_days),
        )
        return "".join(
            c.public_bytes(serialization.Encoding.PEM).decode("ascii")
            for c in (leaf, self._ca_cert)
        )


@pytest.fixture()
def fake_transport(ca_key, ca_cert) -> FakeTransport:
    return FakeTransport(ca_key, ca_cert)


# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------


class FakeDnsProvider(DnsProvider):
    """Records TXT operations; optionally shares an event log with the transport."""

    def __init__(self, events: list[str] | None = None) -> None:
        super().__init__({})
        self.records: dict[str, str] = {}
        self.calls: list[tuple] = []
        self.events = events if events is not None else []
        self.add_error: Exception | None = None
        self.remove_error: Exception | None = None
        self.propagated = True

    def add_txt_record(self, record_name: str, value: str) -> None:
        self.calls.append(("add", record_name, value))
        self.events.append("dns:add")
        if self.add_error is not None:
            raise self.add_error
        self.records[record_name] = value

    def remove_txt_record(self, record_name: str) -> None:
        self.calls.append(("remove", record_name))
        self.events.append("dns:remove")
        if self.remove_error is not None:
            raise self.remove_error
        self.records.pop(record_name, None)

    def check_propagation(self, record_name, value, *, resolvers=(), timeout=10.0) -> bool:
        self.calls.append(("check", record_name, value))
        return self.propagated


class FakeCdnProvider(CdnProvider):
    """Serves a fixed list of statuses and records deployments."""

    def __init__(self, statuses=(), events: list[str] | None = None) -> None:
        super().__init__({})
        self.statuses = list(statuses)
        self.deployments: list[tuple[str, str, str, str]] = []
        self.events = events if events is not None else []
        self.accept = True
        self.deploy_error: Exception | None = None

    def list_managed_domains(self) -> list[DomainCertificateStatus]:
        return list(self.statuses)

    def deploy_certificate(self, domain, cert_name, pem_chain, pem_key) -> bool:
        self.events.append(f"deploy:{domain}")
        if self.deploy_error is not None:
            raise self.deploy_error
        self.deployments.append((domain, cert_name, pem_chain, pem_key))
        return self.accept


@pytest.fixture()
def fake_dns(fake_transport) -> FakeDnsProvider:
    return FakeDnsProvider(events=fake_transport.events)


@pytest.fixture()
def fake_cdn(fake_transport) -> FakeCdnProvider:
    return FakeCdnProvider(events=fake_transport.events)
