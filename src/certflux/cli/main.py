"""certflux command-line entry point.

Usage::

    certflux -c /etc/certflux/config.yaml run
    certflux -c config.yaml run --domain www.example.com
    certflux -c config.yaml --validate-only
    certflux -c config.yaml serve
    certflux -c config.yaml check
    certflux -c config.yaml account
    certflux -c config.yaml redeploy example.com
    python -m certflux -c config.yaml run
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from certflux import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="certflux",
        description="certflux: ACME certificate renewal for CDN-managed domains",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # run
    run_parser = subparsers.add_parser("run", help="Run one renewal cycle")
    run_parser.add_argument(
        "--domain",
        action="append",
        dest="domains",
        metavar="HOST",
        help="Restrict the cycle to this host (repeatable).",
    )
    run_parser.add_argument(
        "--metrics",
        action="store_true",
        default=False,
        help="Print cycle metrics in Prometheus text format afterwards.",
    )

    # serve
    subparsers.add_parser("serve", help="Run renewal cycles periodically until stopped")

    # check
    subparsers.add_parser("check", help="Show renewal decisions without changing anything")

    # account
    subparsers.add_parser("account", help="Create or verify the ACME account")

    # redeploy
    redeploy_parser = subparsers.add_parser(
        "redeploy",
        help="Deploy the newest stored certificate without reissuing",
    )
    redeploy_parser.add_argument("domain", help="Domain whose stored certificate to deploy")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"certflux: error: {message}", file=sys.stderr)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, runs the command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    # -- resolve config path ---
    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    try:
        from certflux.config import CertfluxConfig, ConfigValidationError

        config = CertfluxConfig(config_file=str(config_path))
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from certflux.logging import configure_logging

    configure_logging(config.settings.logging)
    if args.debug:
        logging.getLogger("certflux").setLevel(logging.DEBUG)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    # -- dispatch subcommand ---
    command = args.command

    if command == "run":
        from certflux.cli.commands.run import run_cycle

        run_cycle(config, args)
    elif command == "serve":
        from certflux.cli.commands.serve import run_serve

        run_serve(config, args)
    elif command == "check":
        from certflux.cli.commands.check import run_check

        run_check(config, args)
    elif command == "account":
        from certflux.cli.commands.account import run_account

        run_account(config, args)
    elif command == "redeploy":
        from certflux.cli.commands.redeploy import run_redeploy

        run_redeploy(config, args)
    else:
        parser.print_help(sys.stderr)
        sys.exit(2)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    settings = config.settings
    print(f"Configuration OK: {config.config_file}")
    print(f"  CA directory:    {settings.acme.directory_url}")
    print(f"  Contact:         {settings.acme.contact_email}")
    print(f"  Challenge type:  {settings.challenges.preferred_type}")
    print(
        f"  Renewal:         {settings.renewal.renew_before_days}d before expiry, "
        f"every {settings.renewal.interval_seconds}s",
    )
    print(f"  DNS provider:    {settings.providers.dns.name}")
    print(f"  CDN provider:    {settings.providers.cdn.name}")
