"""Serve subcommand: run renewal cycles until SIGINT/SIGTERM."""

from __future__ import annotations

import logging
import signal

log = logging.getLogger(__name__)


def run_serve(config, args) -> None:
    """Start the periodic renewal worker and block until signalled."""
    from certflux.cli.commands.common import build_runtime

    runtime = build_runtime(config, args)
    worker = runtime.create_worker()

    def _on_signal(signum, _frame) -> None:
        log.info("Received %s, shutting down", signal.Signals(signum).name)
        runtime.stop_event.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    worker.start()
    while not runtime.stop_event.wait(timeout=1.0):
        if not worker.is_running:
            break
    worker.stop()
