"""On-disk archive of issued certificates.

Each issuance is written as a pair of files under the certificate
directory::

    <domain>_<YYYYmmddHHMMSS>_cert.pem   full chain, leaf first
    <domain>_<YYYYmmddHHMMSS>_key.pem    PKCS#8 private key, mode 0600

Two issuances for the same domain within one second get ``-1``,
``-2``, ... appended to the timestamp; files are created exclusively so
an existing pair is never overwritten.  The newest pair is what a
deploy-only retry re-reads.
"""

from __future__ import annotations

import contextlib
import logging
import re
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from certflux.core.crypto import load_private_key_pem, parse_pem_chain
from certflux.models import IssuedCertificate, PersistedCertificate
from certflux.storage.files import exclusive_create

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)

_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"

_CERT_NAME_RE = re.compile(
    r"^(?P<domain>.+)_(?P<stamp>\d{14})(?:-(?P<seq>\d+))?_cert\.pem$",
)


class CertificateStore:
    """Lock-guarded writer/reader for persisted certificate pairs.

    Parameters
    ----------
    cert_dir:
        Directory holding the certificate archive (created on demand).
    clock:
        Returns the current UTC time; injectable for tests.

    """

    def __init__(
        self,
        cert_dir: str | Path,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._dir = Path(cert_dir)
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()

    @property
    def directory(self) -> Path:
        return self._dir

    def persist(self, domain: str, issued: IssuedCertificate) -> PersistedCertificate:
        """Write the chain and key for *domain* under a collision-free name."""
        chain = issued.pem_chain.encode("ascii")
        key = issued.pem_key.encode("ascii")

        with self._lock:
            self._dir.mkdir(parents=True, exist_ok=True)
            stamp = self._clock().strftime(_TIMESTAMP_FORMAT)

            seq = -1
            while True:
                seq += 1
                timestamp = stamp if seq == 0 else f"{stamp}-{seq}"
                cert_path = self._dir / f"{domain}_{timestamp}_cert.pem"
                key_path = self._dir / f"{domain}_{timestamp}_key.pem"
                if key_path.exists():
                    continue
                try:
                    exclusive_create(cert_path, chain, mode=0o644)
                except FileExistsError:
                    continue
                try:
                    exclusive_create(key_path, key, mode=0o600)
                except BaseException:
                    with contextlib.suppress(OSError):
                        cert_path.unlink()
                    raise

                log.info(
                    "Persisted certificate serial %s to %s",
                    issued.serial_hex,
                    cert_path,
                    extra={"domain": domain, "stage": "persist"},
                )
                return PersistedCertificate(
                    domain=domain,
                    cert_path=cert_path,
                    key_path=key_path,
                    timestamp=timestamp,
                )

    def history(self, domain: str) -> list[PersistedCertificate]:
        """All persisted pairs for *domain*, oldest first."""
        if not self._dir.is_dir():
            return []

        found: list[tuple[str, int, PersistedCertificate]] = []
        for path in self._dir.iterdir():
            match = _CERT_NAME_RE.match(path.name)
            if match is None or match.group("domain") != domain:
                continue
            stamp = match.group("stamp")
            seq = int(match.group("seq") or 0)
            timestamp = stamp if seq == 0 else f"{stamp}-{seq}"
            key_path = self._dir / f"{domain}_{timestamp}_key.pem"
            if not key_path.is_file():
                log.warning("Ignoring %s: matching key file is missing", path)
                continue
            found.append(
                (
                    stamp,
                    seq,
                    PersistedCertificate(
                        domain=domain,
                        cert_path=path,
                        key_path=key_path,
                        timestamp=timestamp,
                    ),
                ),
            )

        found.sort(key=lambda item: (item[0], item[1]))
        return [item[2] for item in found]

    def latest(self, domain: str) -> PersistedCertificate | None:
        entries = self.history(domain)
        return entries[-1] if entries else None

    def load(self, persisted: PersistedCertificate) -> IssuedCertificate:
        """Re-read a persisted pair into an :class:`IssuedCertificate`.

        Raises
        ------
        OSError
            If either file cannot be read.
        ValueError
            If the files do not contain a valid chain or RSA key.

        """
        chain = parse_pem_chain(persisted.cert_path.read_bytes())
        key = load_private_key_pem(persisted.key_path.read_bytes())
        return IssuedCertificate(domains=(persisted.domain,), chain=chain, private_key=key)
