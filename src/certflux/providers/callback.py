"""Script-driven DNS and CDN providers.

Operators who cannot (or do not want to) ship a Python class for their
vendor point certflux at executables instead.

DNS (``providers.dns.name: callback``):

- ``create_script``: called as ``script <record_name> <record_value>``
- ``delete_script``: called as ``script <record_name>``
- ``script_timeout``: seconds before a script is killed (default 60)

CDN (``providers.cdn.name: callback``):

- ``domains``: hostnames to manage; each is probed over TLS to read the
  certificate it currently serves
- ``deploy_script``: called as
  ``script <domain> <cert_name> <chain_file> <key_file>``; the files
  are temporary and removed after the script exits
- ``script_timeout``, ``probe_port`` (443), ``probe_timeout`` (10)
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Any

from certflux.core.errors import ProviderError
from certflux.models import DomainCertificateStatus
from certflux.providers.base import CdnProvider, DnsProvider
from certflux.providers.tls_probe import DEFAULT_TLS_PORT, probe_certificate_status

log = logging.getLogger(__name__)

_DEFAULT_SCRIPT_TIMEOUT = 60


def _run_script(args: list[str], timeout: float) -> subprocess.CompletedProcess:
    """Run a provider script, raising :class:`ProviderError` on failure."""
    try:
        return subprocess.run(  # noqa: S603
            args,
            check=True,
            timeout=timeout,
            capture_output=True,
            text=True,
        )
    except subprocess.CalledProcessError as exc:
        msg = f"{args[0]} exited with status {exc.returncode}: {(exc.stderr or '').strip()}"
        raise ProviderError(msg) from exc
    except subprocess.TimeoutExpired as exc:
        msg = f"{args[0]} timed out after {timeout}s"
        raise ProviderError(msg) from exc
    except OSError as exc:
        msg = f"Cannot execute {args[0]}: {exc}"
        raise ProviderError(msg) from exc


class CallbackDnsProvider(DnsProvider):
    """Manages TXT records through operator-supplied scripts."""

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        super().__init__(config)
        self._create_script = self.config.get("create_script")
        self._delete_script = self.config.get("delete_script")
        if not self._create_script:
            msg = "callback DNS provider requires 'create_script' in config"
            raise ProviderError(msg)
        if not self._delete_script:
            msg = "callback DNS provider requires 'delete_script' in config"
            raise ProviderError(msg)
        self._timeout = self.config.get("script_timeout", _DEFAULT_SCRIPT_TIMEOUT)

    def add_txt_record(self, record_name: str, value: str) -> None:
        log.info("DNS create: %s via %s", record_name, self._create_script)
        _run_script([self._create_script, record_name, value], self._timeout)

    def remove_txt_record(self, record_name: str) -> None:
        log.info("DNS delete: %s via %s", record_name, self._delete_script)
        _run_script([self._delete_script, record_name], self._timeout)


class CallbackCdnProvider(CdnProvider):
    """Lists configured domains and deploys through a script."""

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        super().__init__(config)
        self._deploy_script = self.config.get("deploy_script")
        if not self._deploy_script:
            msg = "callback CDN provider requires 'deploy_script' in config"
            raise ProviderError(msg)
        self._domains = tuple(self.config.get("domains", ()))
        self._timeout = self.config.get("script_timeout", _DEFAULT_SCRIPT_TIMEOUT)
        self._probe_port = self.config.get("probe_port", DEFAULT_TLS_PORT)
        self._probe_timeout = self.config.get("probe_timeout", 10.0)

    def list_managed_domains(self) -> list[DomainCertificateStatus]:
        return [
            probe_certificate_status(d, port=self._probe_port, timeout=self._probe_timeout)
            for d in self._domains
        ]

    def deploy_certificate(
        self,
        domain: str,
        cert_name: str,
        pem_chain: str,
        pem_key: str,
    ) -> bool:
        with tempfile.TemporaryDirectory(prefix="certflux-deploy-") as tmp:
            chain_file = Path(tmp) / "fullchain.pem"
            key_file = Path(tmp) / "privkey.pem"
            chain_file.write_text(pem_chain, encoding="ascii")
            key_file.touch(mode=0o600)
            key_file.write_text(pem_key, encoding="ascii")

            log.info(
                "CDN deploy: %s as %s via %s",
                domain,
                cert_name,
                self._deploy_script,
                extra={"domain": domain, "stage": "deploy"},
            )
            try:
                _run_script(
                    [self._deploy_script, domain, cert_name, str(chain_file), str(key_file)],
                    self._timeout,
                )
            except ProviderError as exc:
                log.error(
                    "CDN deploy script rejected %s: %s",
                    cert_name,
                    exc,
                    extra={"domain": domain, "stage": "deploy"},
                )
                return False
        return True
