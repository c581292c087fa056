from __future__ import annotations

import json
import signal
import sys
import threading
import time
from typing import Optional

from .alarm import SilentAlarm, ToneAlarm
from .config import apply_config, build_arg_parser, get_notifier_config, load_toml_config, resolved_config_dict
from .constants import VERSION
from .control import ControlServer
from .doctor import run_doctor
from .logging import JsonLogger
from .monitor import ConnectivityMonitor
from .notify import Notifier
from .probe import ConnectivityProber
from .state import ConnectivityStatus
from .util import clamp_interval

STATUS_LABELS = {
    ConnectivityStatus.UNKNOWN: "Unknown",
    ConnectivityStatus.CONNECTED: "Connected",
    ConnectivityStatus.DISCONNECTED: "Disconnected",
}


def format_status(status: ConnectivityStatus, ts: Optional[float]) -> str:
    """Render a status the way the status line shows it."""
    when = time.strftime("%H:%M:%S", time.localtime(ts)) if ts else "never"
    return f"Status: {STATUS_LABELS[status]}  (last check: {when})"


def parse_args(argv=None):
    """Parse the command line and resolve it against --config and built-in defaults."""
    ap = build_arg_parser()
    args = ap.parse_args(argv)
    cfg = load_toml_config(args.config) if args.config else {}
    apply_config(args, cfg)
    try:
        args.interval = clamp_interval(args.interval)
    except ValueError as e:
        ap.error(str(e))
    try:
        timeout = float(args.timeout)
    except (TypeError, ValueError):
        ap.error(f"invalid probe timeout: {args.timeout!r}")
    if not timeout > 0:
        ap.error(f"probe timeout must be positive, got {args.timeout!r}")
    args.timeout = timeout
    return args


def main(argv=None):
    """CLI entry point. Parses args, builds the monitor and runs until signalled."""
    args = parse_args(argv)

    if args.print_config:
        print(json.dumps(resolved_config_dict(args), indent=2, sort_keys=True))
        return 0

    if args.version:
        print(VERSION)
        return 0

    prober = ConnectivityProber(url=args.url, timeout_s=args.timeout)

    if args.doctor:
        try:
            return run_doctor(args, prober)
        finally:
            prober.close()

    if args.once:
        try:
            result = prober.probe()
        finally:
            prober.close()
        print(format_status(ConnectivityStatus.from_reachable(result.ok), time.time()))
        return 0 if result.ok else 1

    logger = JsonLogger(enable_json=bool(args.json))
    stop = threading.Event()
    exit_code = 0

    def on_status(status, ts):
        if not args.json:
            print(format_status(status, ts), flush=True)

    def on_warning(message):
        print(f"WARNING: {message}", file=sys.stderr, flush=True)

    def on_error(exc):
        nonlocal exit_code
        print(f"ERROR: monitoring stopped due to an error: {exc}", file=sys.stderr, flush=True)
        exit_code = 3
        stop.set()

    mon = ConnectivityMonitor(
        prober=prober,
        alarm=SilentAlarm() if args.silent else ToneAlarm(player=args.player),
        logger=logger,
        interval_s=args.interval,
        probe_timeout_s=args.timeout,
        alarm_frequency_hz=args.frequency,
        alarm_tone_ms=args.tone_ms,
        on_status=on_status,
        on_error=on_error,
        on_warning=on_warning,
        notifier=Notifier(logger=logger, **get_notifier_config()),
        verbose=args.verbose,
    )

    if not args.no_banner:
        print(f"netmon {VERSION}")
        # Structured startup event for log scraping
        logger.emit(
            "startup",
            version=VERSION,
            url=args.url,
            timeout_s=args.timeout,
            interval_s=args.interval,
            alarm=("off" if args.silent else "on"),
            frequency_hz=args.frequency,
            tone_ms=args.tone_ms,
            control_socket=args.control_socket or None,
        )

    control = None
    if args.control_socket:
        control = ControlServer(mon, logger, args.control_socket)
        control.start()

    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    mon.start()
    while not stop.wait(0.2):
        pass

    if control is not None:
        control.stop()
    mon.close()
    logger.emit("shutdown", exit_code=exit_code)
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
