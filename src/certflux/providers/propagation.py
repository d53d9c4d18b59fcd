"""DNS-01 propagation check.

Queries ``_acme-challenge.{domain}`` for a TXT record whose value
matches the expected digest, so the processor can hold off triggering
validation until resolvers actually serve the record.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import dns.exception
import dns.resolver

if TYPE_CHECKING:
    from collections.abc import Sequence

log = logging.getLogger(__name__)


def challenge_record_name(domain: str) -> str:
    """``_acme-challenge`` name for *domain*, with any ``*.`` stripped."""
    return f"_acme-challenge.{domain.removeprefix('*.')}"


def txt_record_present(
    record_name: str,
    expected: str,
    *,
    resolvers: Sequence[str] = (),
    timeout: float = 10.0,
) -> bool:
    """Return ``True`` if *record_name* serves a TXT value equal to *expected*.

    Resolution failures (NXDOMAIN, no answer, timeouts) mean "not yet
    propagated" and return ``False``.

    Parameters
    ----------
    record_name:
        Fully-qualified TXT record name.
    expected:
        The digest value that must be present.
    resolvers:
        Nameserver IPs to query; the system resolver when empty.
    timeout:
        Total query lifetime in seconds.

    """
    resolver = dns.resolver.Resolver()
    if resolvers:
        resolver.nameservers = list(resolvers)
    resolver.lifetime = timeout

    try:
        answer = resolver.resolve(record_name, "TXT")
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer) as exc:
        log.debug("TXT %s not visible yet: %s", record_name, exc)
        return False
    except dns.exception.DNSException as exc:
        log.debug("TXT lookup for %s failed: %s", record_name, exc)
        return False

    found = []
    for rdata in answer:
        # TXT rdata is a tuple of byte segments; concatenate them.
        value = b"".join(rdata.strings).decode("ascii", errors="replace")
        found.append(value)
        if value == expected:
            return True

    log.debug(
        "TXT %s has %d record(s), none matching the expected digest",
        record_name,
        len(found),
    )
    return False
