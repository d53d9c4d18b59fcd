"""Helpers shared by the subcommands."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from certflux.core.errors import AccountInitError, ProviderError

if TYPE_CHECKING:
    from certflux.app.factory import Runtime
    from certflux.config import CertfluxConfig


def build_runtime(config: CertfluxConfig, args, *, load_account: bool = True) -> Runtime:
    """Wire the runtime, exiting with status 1 on startup failures.

    With *load_account* the account key store is opened (and created
    if absent); an unusable key store is fatal.
    """
    from certflux.app import create_runtime

    try:
        runtime = create_runtime(config.settings)
    except ProviderError as exc:
        if args.debug:
            raise
        print(f"certflux: error: {exc}", file=sys.stderr)
        sys.exit(1)

    if load_account:
        try:
            runtime.account_store.ensure_key_material()
        except AccountInitError as exc:
            if args.debug:
                raise
            print(f"certflux: error: account initialisation failed: {exc}", file=sys.stderr)
            sys.exit(1)
    return runtime


def print_report(report) -> None:
    """Print one line per domain outcome."""
    for outcome in report.outcomes:
        line = f"{outcome.action:<10} {outcome.hostname}"
        if outcome.serial:
            line += f"  serial={outcome.serial}"
        if outcome.error:
            line += f"  [{outcome.stage}] {outcome.error}"
        print(line)
