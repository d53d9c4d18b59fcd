"""HTTP-01 challenge handler (RFC 8555 §8.3).

Writes the key authorization to
``<webroot>/.well-known/acme-challenge/<token>`` for the web server in
front of the domain to serve.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from certflux.challenge.base import ChallengeError, ChallengeHandler
from certflux.core.types import ChallengeType

if TYPE_CHECKING:
    from certflux.models import Challenge

log = logging.getLogger(__name__)

WELL_KNOWN_PATH = ".well-known/acme-challenge"


class Http01Handler(ChallengeHandler):
    """Places HTTP-01 token files under a webroot."""

    challenge_type = ChallengeType.HTTP_01

    def __init__(self, webroot: str | Path = "/var/www") -> None:
        self._webroot = Path(webroot)

    def token_path(self, challenge: Challenge) -> Path:
        token = challenge.token
        if not token or "/" in token or token in (".", ".."):
            msg = f"HTTP-01 token {token!r} is not a valid file name"
            raise ChallengeError(msg)
        return self._webroot / WELL_KNOWN_PATH / token

    def resource_key(self, domain: str, challenge: Challenge) -> str:
        return f"http-01:{domain}"

    def prepare(self, domain: str, challenge: Challenge) -> None:
        path = self.token_path(challenge)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(challenge.key_authorization, encoding="ascii")
        except OSError as exc:
            msg = f"Cannot write HTTP-01 token file {path}: {exc}"
            raise ChallengeError(msg) from exc
        log.debug(
            "HTTP-01 token file written: %s",
            path,
            extra={"domain": domain, "stage": "challenge"},
        )

    def cleanup(self, domain: str, challenge: Challenge) -> None:
        try:
            self.token_path(challenge).unlink(missing_ok=True)
        except Exception as exc:  # noqa: BLE001
            log.warning(
                "Failed to remove HTTP-01 token file: %s",
                exc,
                extra={"domain": domain, "stage": "challenge"},
            )
