from __future__ import annotations

import json
import sys
import time
from typing import Optional, TextIO

# Events routed to the error stream.
ERROR_EVENTS = frozenset({"fetch_error", "notify_error"})


class JsonLogger:
    """Minimal structured logger.

    Emits single-line events for monitor activity (seeding, alerts, window
    resets, fetch/notify failures) so logs are easy to grep and machine-parse.
    Failure events go to ``err_stream`` so they stand out under systemd/docker."""
    def __init__(
        self,
        enable_json: bool,
        stream: Optional[TextIO] = None,
        err_stream: Optional[TextIO] = None,
        verbose: bool = False,
    ):
        """Create a logger.

        Args:
            enable_json: Emit JSON objects instead of human-readable lines.
            stream: Output for regular events (defaults to stdout).
            err_stream: Output for failure events (defaults to stderr).
            verbose: Also emit events passed to ``debug``.
        """
        self.enable_json = enable_json
        self.verbose = bool(verbose)
        self._stream = stream
        self._err_stream = err_stream

    def _target(self, event: str) -> TextIO:
        # Resolved lazily so pytest's capsys/capfd replacement is honoured.
        if event in ERROR_EVENTS:
            return self._err_stream or sys.stderr
        return self._stream or sys.stdout

    def emit(self, event: str, **fields):
        """Emit an event with a name and optional key/value fields."""
        t = time.time()
        # ts: float seconds since epoch. ts_iso is a local timestamp with milliseconds.
        ts_iso = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(t)) + f'.{int((t - int(t))*1000):03d}'
        if self.enable_json:
            payload = {"ts": t, "ts_iso": ts_iso, "event": event, **fields}
            line = json.dumps(payload, sort_keys=True, default=str)
        else:
            line = f"[{ts_iso}] {event}"
            if fields:
                line += " " + " ".join(f"{k}={v}" for k, v in fields.items())
        print(line, file=self._target(event), flush=True)

    def debug(self, event: str, **fields):
        """Emit only when verbose logging is enabled."""
        if self.verbose:
            self.emit(event, **fields)
