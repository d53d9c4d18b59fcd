"""Order lifecycle: creation, authorization processing, finalization.

Orders are created fresh for every renewal attempt and never reused.
When a validity window is requested and the CA refuses custom windows,
the order is re-requested once for the identical domain set without
the window; any other rejection abandons the order.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from certflux.core.crypto import build_csr, csr_pem, parse_pem_chain
from certflux.core.errors import AcmeTransportError, CertfluxError
from certflux.models import IssuedCertificate

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from cryptography.hazmat.primitives.asymmetric import rsa

    from certflux.acme.base import AcmeTransport
    from certflux.models import Order
    from certflux.services.challenge import ChallengeProcessor

log = logging.getLogger(__name__)

VALIDITY_REJECTION_TYPE = "urn:ietf:params:acme:error:malformed"
VALIDITY_REJECTION_PHRASE = "NotBefore and NotAfter"


def is_validity_rejection(exc: AcmeTransportError) -> bool:
    """Whether *exc* is the CA refusing a custom notBefore/notAfter window."""
    return exc.typ == VALIDITY_REJECTION_TYPE and VALIDITY_REJECTION_PHRASE in (exc.detail or "")


class OrderClient:
    """Creates, authorizes and finalizes ACME orders.

    Parameters
    ----------
    transport:
        ACME transport bound to the account.
    clock:
        Returns the current UTC time; injectable for tests.

    """

    def __init__(
        self,
        transport: AcmeTransport,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._transport = transport
        self._clock = clock or (lambda: datetime.now(UTC))

    def create_order(
        self,
        domains: Iterable[str],
        validity_days: int | None = None,
    ) -> Order | None:
        """Create an order for *domains*; ``None`` if the CA refuses it.

        Raises
        ------
        ValueError
            If *domains* is empty or *validity_days* is not positive.

        """
        domain_set = tuple(domains)
        if not domain_set:
            msg = "An order needs at least one domain"
            raise ValueError(msg)
        if validity_days is not None and validity_days <= 0:
            msg = f"validity_days must be positive, got {validity_days}"
            raise ValueError(msg)

        not_after = None
        if validity_days is not None:
            not_after = self._clock() + timedelta(days=validity_days)

        try:
            order = self._transport.new_order(domain_set, not_after)
        except AcmeTransportError as exc:
            if not_after is None or not is_validity_rejection(exc):
                log.error(
                    "Order creation failed: %s",
                    exc,
                    extra={"domain": domain_set[0], "stage": "order"},
                )
                return None
            log.warning(
                "CA rejected the requested validity window; retrying with CA default",
                extra={"domain": domain_set[0], "stage": "order"},
            )
            try:
                order = self._transport.new_order(domain_set, None)
            except AcmeTransportError as retry_exc:
                log.error(
                    "Order creation failed without validity window: %s",
                    retry_exc,
                    extra={"domain": domain_set[0], "stage": "order"},
                )
                return None
            return order

        return dataclasses.replace(order, requested_validity_days=validity_days)

    def process_authorizations(
        self,
        order: Order,
        processor: ChallengeProcessor,
        preferred_type: str | None = None,
    ) -> bool:
        """Run every authorization of *order*; ``True`` only if all succeed.

        A failure does not stop the remaining authorizations from being
        attempted.
        """
        results: list[bool] = []
        for url in order.authorization_urls:
            try:
                authorization = self._transport.fetch_authorization(url)
                results.append(processor.process_authorization(authorization, preferred_type))
            except (CertfluxError, OSError) as exc:
                log.error(
                    "Authorization %s failed: %s",
                    url,
                    exc,
                    extra={"domain": order.domains[0], "stage": "challenge"},
                )
                results.append(False)
        return all(results)

    def finalize_order(
        self,
        order: Order,
        domain_key: rsa.RSAPrivateKey,
    ) -> IssuedCertificate | None:
        """Submit a CSR for the order's domains and return the issued chain.

        The CSR is signed with *domain_key*, which must not be the
        account key.  Returns ``None`` if the CA rejects the CSR or the
        returned chain cannot be parsed.
        """
        request = csr_pem(build_csr(order.domains, domain_key))
        try:
            pem = self._transport.finalize_order(order, request)
            chain = parse_pem_chain(pem)
        except (AcmeTransportError, ValueError) as exc:
            log.error(
                "Order finalization failed: %s",
                exc,
                extra={"domain": order.domains[0], "stage": "finalize"},
            )
            return None

        issued = IssuedCertificate(domains=order.domains, chain=chain, private_key=domain_key)
        log.info(
            "Certificate issued, serial %s, valid until %s",
            issued.serial_hex,
            issued.not_after.isoformat(),
            extra={"domain": order.domains[0], "stage": "finalize"},
        )
        return issued
