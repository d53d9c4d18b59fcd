"""Check subcommand: print renewal decisions without side effects."""

from __future__ import annotations

import sys

from certflux.core.errors import ProviderError


def run_check(config, args) -> None:
    """List every managed host with its expiry and renewal decision."""
    from certflux.cli.commands.common import build_runtime
    from certflux.services.renewal import normalize_domain

    runtime = build_runtime(config, args, load_account=False)
    try:
        plan = runtime.scheduler.plan()
    except ProviderError as exc:
        print(f"certflux: error: cannot list managed domains: {exc}", file=sys.stderr)
        sys.exit(1)

    for status, renew in plan:
        expiry = status.not_after.isoformat() if status.not_after else "no certificate"
        decision = "renew" if renew else "ok"
        print(f"{decision:<6} {status.hostname:<40} {normalize_domain(status.hostname):<30} {expiry}")
