from __future__ import annotations

import json
import time


class JsonLogger:
    """Minimal structured logger.

    Emits single-line events for monitor transitions (start/stop, status
    changes, alarm start/stop, faults) so logs are easy to grep and
    machine-parse."""
    def __init__(self, enable_json: bool):
        """Create a logger.

        Args:
            enable_json: Emit JSON objects instead of `[timestamp] event k=v` lines.
        """
        self.enable_json = enable_json

    def emit(self, event: str, **fields):
        """Emit an event with a name and optional key/value fields."""
        t = time.time()
        # ts: float seconds since epoch. ts_iso is local time with milliseconds.
        ts_iso = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(t)) + f'.{int((t - int(t))*1000):03d}'
        if self.enable_json:
            payload = {"ts": t, "ts_iso": ts_iso, "event": event, **fields}
            print(json.dumps(payload, sort_keys=True, default=str), flush=True)
        else:
            msg = f"[{ts_iso}] {event}"
            if fields:
                msg += " " + " ".join(f"{k}={v}" for k, v in fields.items())
            print(msg, flush=True)
