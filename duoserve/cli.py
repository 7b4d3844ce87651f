"""Command line entry point for the server."""

from __future__ import annotations

import logging
import os
import re
import signal
import sys
import threading
from typing import NamedTuple, Optional, Sequence

from duoserve.server import Server, ServerError

DEFAULT_PORT = 8888


class Options(NamedTuple):
    port: int
    threads: int


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else 0


def parse_args(argv: Sequence[str]) -> Options:
    """Read ``PORT THREADS``; any other argument count keeps the defaults."""
    if len(argv) == 2:
        return Options(_atoi(argv[0]), _atoi(argv[1]))
    return Options(DEFAULT_PORT, os.cpu_count() or 1)


def _install_signal_handlers(running: threading.Event):
    if threading.current_thread() is not threading.main_thread():
        return {}

    def handler(signum, frame):
        print(f"\nSignal accepted {signum}. closing work...", flush=True)
        running.clear()

    return {sig: signal.signal(sig, handler) for sig in (signal.SIGINT, signal.SIGTERM)}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Start the server and serve until a signal or a shutdown command."""
    args = list(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stdout)
    options = parse_args(args)
    running = threading.Event()
    running.set()
    previous = _install_signal_handlers(running)
    try:
        server = Server(running)
        try:
            server.start(options.port, options.threads)
        except ServerError as exc:
            print(exc, file=sys.stderr)
            return 1
        with server:
            server.run()
    except Exception as exc:
        print(exc)
    finally:
        for sig, old in previous.items():
            signal.signal(sig, old)
    return 0