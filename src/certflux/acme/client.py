"""ACME transport built on the certbot ``acme`` library.

One :class:`AcmeClientTransport` owns a single ``ClientV2`` bound to
the account key.  The client carries nonce state, so every call is
serialised through an internal lock.

Order creation goes through a ``NewOrder`` subclass that adds the
optional RFC 8555 ``notAfter`` field, which the stock message type
does not expose.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import josepy as jose
from acme import challenges as acme_challenges
from acme import client as acme_client
from acme import errors as acme_errors
from acme import fields, messages

from certflux.acme.base import AcmeTransport
from certflux.core.errors import AcmeTransportError
from certflux.core.types import AuthorizationStatus, ChallengeStatus, OrderStatus
from certflux.models import Authorization, Challenge, Order

if TYPE_CHECKING:
    from collections.abc import Iterator

    from cryptography.hazmat.primitives.asymmetric import rsa

log = logging.getLogger(__name__)

_RETRYABLE_PATTERNS = (
    "timeout",
    "connection",
    "network",
    "server",
    "ratelimited",
    "503",
    "429",
)


class _NewOrderWithValidity(messages.NewOrder):
    """``newOrder`` payload carrying a requested ``notAfter``."""

    not_after: datetime = fields.rfc3339("notAfter", omitempty=True)


def _is_retryable(exc: Exception) -> bool:
    """Determine whether an upstream error is retryable via heuristics."""
    text = f"{type(exc).__name__} {exc}".lower()
    return any(p in text for p in _RETRYABLE_PATTERNS)


@contextlib.contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Re-raise library and network errors as :class:`AcmeTransportError`."""
    try:
        yield
    except messages.Error as exc:
        raise AcmeTransportError(
            exc.detail or str(exc),
            typ=exc.typ,
            retryable=_is_retryable(exc),
        ) from exc
    except (acme_errors.Error, jose.errors.Error, OSError, ValueError) as exc:
        msg = f"{action} failed: {exc}"
        raise AcmeTransportError(msg, retryable=_is_retryable(exc)) from exc


class AcmeClientTransport(AcmeTransport):
    """:class:`AcmeTransport` speaking RFC 8555 through ``acme.client.ClientV2``.

    Parameters
    ----------
    directory_url:
        The CA's ACME directory URL.
    user_agent:
        User-Agent header sent with every request.
    verify_ssl:
        Whether to verify the CA's TLS certificate.
    finalize_timeout_seconds:
        Deadline for the CA to move a finalized order to ``valid``.

    """

    def __init__(
        self,
        directory_url: str,
        *,
        user_agent: str = "certflux",
        verify_ssl: bool = True,
        finalize_timeout_seconds: int = 90,
    ) -> None:
        self._directory_url = directory_url
        self._user_agent = user_agent
        self._verify_ssl = verify_ssl
        self._finalize_timeout = finalize_timeout_seconds
        self._lock = threading.RLock()
        self._client: acme_client.ClientV2 | None = None
        self._jwk: jose.JWKRSA | None = None

    # -- account ------------------------------------------------------------

    def _connect(self, key: rsa.RSAPrivateKey) -> acme_client.ClientV2:
        jwk = jose.JWKRSA(key=key)
        net = acme_client.ClientNetwork(
            jwk,
            user_agent=self._user_agent,
            verify_ssl=self._verify_ssl,
        )
        directory = acme_client.ClientV2.get_directory(self._directory_url, net)
        self._jwk = jwk
        return acme_client.ClientV2(directory, net)

    def register_account(self, key: rsa.RSAPrivateKey, contact_email: str) -> str:
        email = contact_email.removeprefix("mailto:")
        with self._lock, _translate_errors("Account registration"):
            client = self._connect(key)
            registration = messages.NewRegistration.from_data(
                email=email,
                terms_of_service_agreed=True,
            )
            try:
                regr = client.new_account(registration)
            except acme_errors.ConflictError as exc:
                # The CA already knows this key; reuse the existing account.
                log.info("Account already exists for key at %s", exc.location)
                regr = client.query_registration(
                    messages.RegistrationResource(
                        body=messages.Registration(),
                        uri=exc.location,
                    ),
                )
            self._client = client
            log.info("Registered ACME account %s", regr.uri)
            return regr.uri

    def bind_account(self, key: rsa.RSAPrivateKey, account_url: str) -> None:
        with self._lock, _translate_errors("Account binding"):
            client = self._connect(key)
            client.query_registration(
                messages.RegistrationResource(
                    body=messages.Registration(),
                    uri=account_url,
                ),
            )
            self._client = client
            log.debug("Bound to existing ACME account %s", account_url)

    def _require_client(self) -> acme_client.ClientV2:
        if self._client is None:
            msg = "No ACME account bound; call register_account or bind_account first"
            raise AcmeTransportError(msg)
        return self._client

    # -- orders -------------------------------------------------------------

    def new_order(
        self,
        domains: tuple[str, ...],
        not_after: datetime | None = None,
    ) -> Order:
        identifiers = [
            messages.Identifier(typ=messages.IDENTIFIER_FQDN, value=d) for d in domains
        ]
        if not_after is not None:
            payload = _NewOrderWithValidity(identifiers=identifiers, not_after=not_after)
        else:
            payload = messages.NewOrder(identifiers=identifiers)

        with self._lock, _translate_errors("Order creation"):
            client = self._require_client()
            response = client._post(client.directory["newOrder"], payload)  # noqa: SLF001
            body = messages.Order.from_json(response.json())
            return Order(
                url=response.headers.get("Location", ""),
                domains=tuple(domains),
                status=OrderStatus(body.status.name),
                finalize_url=body.finalize,
                authorization_urls=tuple(body.authorizations or ()),
            )

    def fetch_authorization(self, url: str) -> Authorization:
        with self._lock, _translate_errors("Authorization fetch"):
            client = self._require_client()
            response = client._post_as_get(url)  # noqa: SLF001
            body = messages.Authorization.from_json(response.json())
            challenges = tuple(self._to_challenge(challb) for challb in body.challenges)
            return Authorization(
                url=url,
                domain=body.identifier.value,
                status=AuthorizationStatus(body.status.name),
                challenges=challenges,
            )

    # -- challenges ---------------------------------------------------------

    def _to_challenge(self, challb: messages.ChallengeBody) -> Challenge:
        chall = challb.chall
        typ = getattr(chall, "typ", None) or getattr(chall, "jobj", {}).get("type", "unknown")
        if isinstance(chall, acme_challenges.KeyAuthorizationChallenge):
            token = chall.encode("token")
            key_authz = chall.key_authorization(self._jwk)
        else:
            token = getattr(chall, "jobj", {}).get("token", "")
            key_authz = ""
        return Challenge(
            url=challb.uri,
            type=typ,
            token=token,
            key_authorization=key_authz,
            status=ChallengeStatus(challb.status.name),
            error=challb.error.detail if challb.error else None,
        )

    def fetch_challenge(self, challenge: Challenge) -> Challenge:
        with self._lock, _translate_errors("Challenge refresh"):
            client = self._require_client()
            response = client._post_as_get(challenge.url)  # noqa: SLF001
            challb = messages.ChallengeBody.from_json(response.json())
            return self._to_challenge(challb)

    def trigger_challenge(self, challenge: Challenge) -> None:
        with self._lock, _translate_errors("Challenge trigger"):
            client = self._require_client()
            challb = messages.ChallengeBody.from_json(
                {
                    "type": str(challenge.type),
                    "url": challenge.url,
                    "status": "pending",
                    "token": challenge.token,
                },
            )
            client.answer_challenge(challb, challb.chall.response(self._jwk))

    # -- finalization -------------------------------------------------------

    def finalize_order(self, order: Order, csr_pem: bytes) -> str:
        with self._lock, _translate_errors("Finalization"):
            client = self._require_client()
            response = client._post_as_get(order.url)  # noqa: SLF001
            orderr = messages.OrderResource(
                body=messages.Order.from_json(response.json()),
                uri=order.url,
                authorizations=[],
                csr_pem=csr_pem,
            )
            deadline = datetime.now() + timedelta(seconds=self._finalize_timeout)
            finished = client.finalize_order(orderr, deadline)
            return finished.fullchain_pem
