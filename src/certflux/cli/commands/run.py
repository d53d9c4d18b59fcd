"""Run subcommand: one renewal cycle, then exit."""

from __future__ import annotations

import logging
import sys

from certflux.core.errors import ProviderError

log = logging.getLogger(__name__)


def run_cycle(config, args) -> None:
    """Run a single cycle; exit status 1 if any domain failed."""
    from certflux.cli.commands.common import build_runtime, print_report

    runtime = build_runtime(config, args)
    try:
        report = runtime.scheduler.run_cycle(only=args.domains)
    except ProviderError as exc:
        log.error("Cannot list managed domains: %s", exc)
        sys.exit(1)

    print_report(report)
    if args.metrics:
        print(runtime.metrics.export(), end="")
    if not report.ok:
        sys.exit(1)
