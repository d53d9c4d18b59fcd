"""ACME account persistence and bootstrap.

The account key pair lives in a password-protected PKCS#12 keystore
under the fixed alias ``acme-account``; the CA-side account URL lives
in a small properties file next to it::

    # certflux ACME account
    account.url=https://ca.example/acme/acct/123
    account.key-fingerprint=5f3c...

The record is only trusted when the keystore still holds the exact key
it was created with (checked both by private-key encoding and by the
public-key fingerprint stamped into the record).  Anything else is
treated as "no account" and a new one is registered.

Write order is keystore first, record last: a crash in between leaves a
record whose fingerprint no longer matches, which is then ignored.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from certflux.core.crypto import DEFAULT_KEY_SIZE, generate_rsa_key, private_key_der
from certflux.core.errors import AccountInitError, AcmeTransportError
from certflux.models import Account, AccountKeyMaterial, AccountRecord
from certflux.storage.files import atomic_write

if TYPE_CHECKING:
    from certflux.acme.base import AcmeTransport

log = logging.getLogger(__name__)

ACCOUNT_ALIAS = "acme-account"
KEY_ACCOUNT_URL = "account.url"
KEY_FINGERPRINT = "account.key-fingerprint"

_PLACEHOLDER_CN = "certflux"
_PLACEHOLDER_VALIDITY_DAYS = 365


def validate_key_pair(stored: AccountKeyMaterial, candidate: AccountKeyMaterial) -> bool:
    """Return ``True`` when *candidate* is the same key pair as *stored*.

    Compares the private keys by their PKCS#8 encoding and checks that
    each public half actually belongs to its private half.
    """
    if private_key_der(stored.private_key) != private_key_der(candidate.private_key):
        return False
    for material in (stored, candidate):
        if material.private_key.public_key().public_numbers() != material.public_key.public_numbers():
            return False
    return stored.fingerprint == candidate.fingerprint


def _placeholder_certificate(key) -> x509.Certificate:
    """Self-signed certificate the keystore format requires next to the key."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, _PLACEHOLDER_CN)])
    now = datetime.now(UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=_PLACEHOLDER_VALIDITY_DAYS))
        .sign(key, hashes.SHA256())
    )


def _parse_properties(text: str) -> dict[str, str]:
    props: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", "!")):
            continue
        key, sep, value = line.partition("=")
        if sep:
            props[key.strip()] = value.strip()
    return props


class AccountStore:
    """Owns the account key pair and account URL on disk.

    One instance is created at startup and passed to every component
    that needs the account; all operations are serialised by a
    re-entrant lock.

    Parameters
    ----------
    keystore_path:
        PKCS#12 file holding the account key.
    account_file:
        Properties file holding the account URL and key fingerprint.
    password:
        Keystore password (empty string for an unencrypted keystore).
    contact_email:
        Contact registered with new accounts (``mailto:`` is added).
    key_size:
        RSA modulus size for a newly generated key.

    """

    def __init__(
        self,
        keystore_path: str | Path,
        account_file: str | Path,
        *,
        password: str,
        contact_email: str,
        key_size: int = DEFAULT_KEY_SIZE,
    ) -> None:
        self._keystore_path = Path(keystore_path)
        self._account_file = Path(account_file)
        self._password = password.encode("utf-8") if password else None
        self._contact_email = contact_email
        self._key_size = key_size
        self._lock = threading.RLock()
        self._material: AccountKeyMaterial | None = None
        self._account: Account | None = None
        self._bound_transport: AcmeTransport | None = None

    # -- key material -------------------------------------------------------

    def load_key_material(self) -> AccountKeyMaterial | None:
        """Read the key pair from the keystore, or ``None`` if absent.

        Raises
        ------
        AccountInitError
            If the keystore exists but is unreadable, the password is
            wrong, or the ``acme-account`` entry is missing.

        """
        if not self._keystore_path.exists():
            return None
        try:
            bundle = pkcs12.load_pkcs12(self._keystore_path.read_bytes(), self._password)
        except (OSError, ValueError) as exc:
            msg = f"Cannot read account keystore {self._keystore_path}: {exc}"
            raise AccountInitError(msg) from exc

        if bundle.key is None or bundle.cert is None:
            msg = f"Account keystore {self._keystore_path} holds no key entry"
            raise AccountInitError(msg)
        if bundle.cert.friendly_name != ACCOUNT_ALIAS.encode("ascii"):
            msg = (
                f"Account keystore {self._keystore_path} has no "
                f"'{ACCOUNT_ALIAS}' entry"
            )
            raise AccountInitError(msg)
        return AccountKeyMaterial.from_private_key(bundle.key)

    def _write_keystore(self, material: AccountKeyMaterial) -> None:
        encryption: serialization.KeySerializationEncryption
        if self._password:
            encryption = serialization.BestAvailableEncryption(self._password)
        else:
            encryption = serialization.NoEncryption()
        data = pkcs12.serialize_key_and_certificates(
            name=ACCOUNT_ALIAS.encode("ascii"),
            key=material.private_key,
            cert=_placeholder_certificate(material.private_key),
            cas=None,
            encryption_algorithm=encryption,
        )
        atomic_write(self._keystore_path, data, mode=0o600)

    def ensure_key_material(self) -> AccountKeyMaterial:
        """Load the account key pair, generating and persisting it if absent.

        Idempotent: once a keystore exists it is always reused.  An
        unreadable or unwritable keystore raises
        :class:`AccountInitError`; the CLI treats that as fatal.
        """
        with self._lock:
            if self._material is not None:
                return self._material

            material = self.load_key_material()
            if material is None:
                log.info(
                    "Generating %d-bit RSA account key at %s",
                    self._key_size,
                    self._keystore_path,
                )
                material = AccountKeyMaterial.from_private_key(
                    generate_rsa_key(self._key_size),
                )
                try:
                    self._write_keystore(material)
                except OSError as exc:
                    msg = f"Cannot write account keystore {self._keystore_path}: {exc}"
                    raise AccountInitError(msg) from exc

            self._material = material
            return material

    # -- account record -----------------------------------------------------

    def load_record(self) -> AccountRecord | None:
        """Read the account record; ``None`` if missing or incomplete."""
        try:
            text = self._account_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            msg = f"Cannot read account file {self._account_file}: {exc}"
            raise AccountInitError(msg) from exc

        props = _parse_properties(text)
        url = props.get(KEY_ACCOUNT_URL)
        if not url:
            return None
        return AccountRecord(account_url=url, key_fingerprint=props.get(KEY_FINGERPRINT, ""))

    def save_record(self, record: AccountRecord) -> None:
        body = (
            "# certflux ACME account\n"
            f"{KEY_ACCOUNT_URL}={record.account_url}\n"
            f"{KEY_FINGERPRINT}={record.key_fingerprint}\n"
        )
        atomic_write(self._account_file, body.encode("utf-8"), mode=0o600)

    def _record_trusted(self, record: AccountRecord, material: AccountKeyMaterial) -> bool:
        stored = self.load_key_material()
        if stored is None or not validate_key_pair(stored, material):
            log.warning("Stored account key does not match the key in use")
            return False
        if record.key_fingerprint != material.fingerprint:
            log.warning(
                "Account record %s was created for a different key; ignoring it",
                record.account_url,
            )
            return False
        return True

    # -- public API ---------------------------------------------------------

    def get_or_create_account(self, transport: AcmeTransport) -> Account:
        """Return the CA account bound on *transport*, creating it if needed.

        Raises
        ------
        AccountInitError
            If the key cannot be loaded or persisted, or the CA refuses
            both binding and registration.

        """
        with self._lock:
            if self._account is not None and self._bound_transport is transport:
                return self._account

            material = self.ensure_key_material()
            try:
                record = self.load_record()
                account: Account | None = None

                if record is not None and self._record_trusted(record, material):
                    try:
                        transport.bind_account(material.private_key, record.account_url)
                        account = Account(url=record.account_url, key=material)
                        log.info("Using existing ACME account %s", record.account_url)
                    except AcmeTransportError as exc:
                        log.warning(
                            "Existing account %s could not be bound (%s); registering a new one",
                            record.account_url,
                            exc,
                        )

                if account is None:
                    url = transport.register_account(material.private_key, self._contact_email)
                    self.save_record(AccountRecord(account_url=url, key_fingerprint=material.fingerprint))
                    account = Account(url=url, key=material)
                    log.info("Created ACME account %s", url)
            except AcmeTransportError as exc:
                msg = f"ACME account registration failed: {exc}"
                raise AccountInitError(msg) from exc
            except OSError as exc:
                msg = f"Cannot persist account record {self._account_file}: {exc}"
                raise AccountInitError(msg) from exc

            self._account = account
            self._bound_transport = transport
            return account
