"""Redeploy subcommand: push the newest stored certificate to the CDN."""

from __future__ import annotations

import sys

from certflux.core.errors import DeploymentError


def run_redeploy(config, args) -> None:
    """Deploy the newest persisted certificate for ``args.domain``."""
    from certflux.cli.commands.common import build_runtime

    runtime = build_runtime(config, args, load_account=False)
    try:
        outcome = runtime.scheduler.redeploy(args.domain)
    except DeploymentError as exc:
        print(f"certflux: error: {exc}", file=sys.stderr)
        sys.exit(1)
    print(f"redeployed {outcome.domain}  serial={outcome.serial}")
