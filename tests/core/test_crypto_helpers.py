"""Tests for certflux.core.crypto."""

from __future__ import annotations

import base64
import hashlib

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from certflux.core.crypto import (
    build_csr,
    csr_pem,
    dns_txt_digest,
    load_private_key_pem,
    parse_pem_chain,
    private_key_der,
    private_key_pem,
    public_key_fingerprint,
    serial_hex,
    serialize_pem_chain,
)


class TestPemChain:
    """Chain serialization keeps every certificate in order."""

    def test_round_trip_preserves_count_order_and_serials(self, issue_certificate):
        issued = issue_certificate("example.com")
        pem = serialize_pem_chain(issued.chain)

        parsed = parse_pem_chain(pem)

        assert len(parsed) == len(issued.chain) == 2
        assert [c.serial_number for c in parsed] == [c.serial_number for c in issued.chain]
        assert parsed[0].subject == issued.leaf.subject

    def test_accepts_bytes(self, issue_certificate):
        pem = issue_certificate().pem_chain.encode("ascii")
        assert len(parse_pem_chain(pem)) == 2

    def test_no_certificate_raises(self):
        with pytest.raises(ValueError, match="No PEM certificate"):
            parse_pem_chain("not a certificate")

    def test_serial_hex_is_lowercase_hex(self, issue_certificate):
        leaf = issue_certificate().leaf
        assert int(serial_hex(leaf), 16) == leaf.serial_number
        assert serial_hex(leaf) == serial_hex(leaf).lower()


class TestCsr:
    def test_first_domain_is_common_name_and_all_in_san(self, domain_key):
        csr = build_csr(["example.com", "www.example.com"], domain_key)

        cn = csr.subject.get_attributes_for_oid(NameOID.COMMON_NAME)[0].value
        san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        assert cn == "example.com"
        assert san.value.get_values_for_type(x509.DNSName) == ["example.com", "www.example.com"]
        assert csr.is_signature_valid

    def test_signed_by_given_key(self, domain_key):
        csr = build_csr(["example.com"], domain_key)
        assert public_key_fingerprint(csr.public_key()) == public_key_fingerprint(
            domain_key.public_key(),
        )

    def test_empty_domains_rejected(self, domain_key):
        with pytest.raises(ValueError, match="at least one domain"):
            build_csr([], domain_key)

    def test_pem_encoding(self, domain_key):
        pem = csr_pem(build_csr(["example.com"], domain_key))
        assert pem.startswith(b"-----BEGIN CERTIFICATE REQUEST-----")


class TestKeys:
    def test_pem_round_trip(self, domain_key):
        loaded = load_private_key_pem(private_key_pem(domain_key))
        assert private_key_der(loaded) == private_key_der(domain_key)

    def test_non_rsa_key_rejected(self):
        ec_key = ec.generate_private_key(ec.SECP256R1())
        pem = ec_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
        with pytest.raises(ValueError, match="RSA"):
            load_private_key_pem(pem)

    def test_fingerprints_differ_between_keys(self, account_key, other_key):
        assert public_key_fingerprint(account_key.public_key()) != public_key_fingerprint(
            other_key.public_key(),
        )


class TestDnsTxtDigest:
    def test_matches_unpadded_base64url_sha256(self):
        key_auth = "token.thumbprint"
        expected = (
            base64.urlsafe_b64encode(hashlib.sha256(key_auth.encode()).digest())
            .rstrip(b"=")
            .decode()
        )
        assert dns_txt_digest(key_auth) == expected
        assert "=" not in dns_txt_digest(key_auth)
        assert len(dns_txt_digest(key_auth)) == 43
