"""Account subcommand: create or verify the ACME account."""

from __future__ import annotations

import sys

from certflux.core.errors import AccountInitError


def run_account(config, args) -> None:
    """Load (or create) the account key and bind or register the account."""
    from certflux.cli.commands.common import build_runtime

    runtime = build_runtime(config, args)
    try:
        account = runtime.account_store.get_or_create_account(runtime.transport)
    except AccountInitError as exc:
        if args.debug:
            raise
        print(f"certflux: error: {exc}", file=sys.stderr)
        sys.exit(1)

    print(f"Account URL:     {account.url}")
    print(f"Key fingerprint: {account.key.fingerprint}")
