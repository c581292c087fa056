#!/usr/bin/env python3
"""Local control client for net-monitor.

Talks to a running daemon over its local UNIX socket (started with
--control-socket).

Commands:
  status | start [N] | stop | check | interval [N] | test-notify

Socket path:
  - default: /run/netmon/netmon.sock
  - override: --socket PATH or NETMON_SOCKET env var
"""

from __future__ import annotations

import argparse
import json
import os
import socket
import sys

from netmon.config import get_notifier_config
from netmon.constants import DEFAULT_CONTROL_SOCKET
from netmon.notify import Notifier


def _send(sock_path: str, cmd: str, timeout_s: float = 15.0) -> dict:
    s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    s.settimeout(timeout_s)
    try:
        s.connect(sock_path)
        s.sendall((cmd.strip() + "\n").encode("utf-8"))
        data = b""
        while b"\n" not in data and len(data) < 65536:
            chunk = s.recv(4096)
            if not chunk:
                break
            data += chunk
    except OSError as e:
        return {"ok": False, "error": f"{sock_path}: {e}"}
    finally:
        s.close()

    line = data.decode("utf-8", errors="replace").strip()
    if not line:
        return {"ok": False, "error": "empty response"}
    try:
        return json.loads(line)
    except json.JSONDecodeError:
        return {"ok": False, "error": "non-json response", "raw": line}


def _test_notify() -> int:
    cfg = get_notifier_config()
    if not cfg["pushover_token"] or not cfg["pushover_user"]:
        print("error: PUSHOVER_TOKEN and PUSHOVER_USER must be set", file=sys.stderr)
        return 2
    n = Notifier(enabled=True, pushover_token=cfg["pushover_token"], pushover_user=cfg["pushover_user"])
    if n.send_sync("Internet Monitor", "Test notification from netmonctl"):
        print("ok")
        return 0
    print("error: notification failed", file=sys.stderr)
    return 2


def _summary(command: str, resp: dict) -> str:
    if command == "status":
        state = resp.get("state", {})
        return (f"ok  version={resp.get('version', '')} status={state.get('status')} "
                f"running={state.get('running')} alarm={state.get('alarm_sounding')} "
                f"interval_s={state.get('interval_s')} checks={state.get('checks_total')}")
    if command == "check":
        return f"ok  status={resp.get('status')}"
    if command == "interval":
        return f"ok  interval_s={resp.get('interval_s')}"
    if command == "start" and resp.get("started") is False:
        return "ok  (already running)"
    if command == "stop" and resp.get("stopped") is False:
        return "ok  (not running)"
    return "ok"


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Control net-monitor via its local UNIX socket")
    ap.add_argument("command", choices=["status", "start", "stop", "check", "interval", "test-notify"],
                    help="Command to send to the daemon")
    ap.add_argument("value", nargs="?", help="Interval in seconds for start/interval")
    ap.add_argument("--socket", default=os.environ.get("NETMON_SOCKET", DEFAULT_CONTROL_SOCKET),
                    help=f"Control socket path (default: {DEFAULT_CONTROL_SOCKET})")
    ap.add_argument("--json", action="store_true", help="Print raw JSON response")
    args = ap.parse_args(argv)

    if args.command == "test-notify":
        return _test_notify()

    cmd = args.command if args.value is None else f"{args.command} {args.value}"
    resp = _send(args.socket, cmd)
    if args.json:
        print(json.dumps(resp, indent=2, sort_keys=True))
        return 0 if resp.get("ok") else 2

    if not resp.get("ok"):
        print(f"error: {resp.get('error', 'unknown error')}", file=sys.stderr)
        raw = resp.get("raw")
        if raw:
            print(raw, file=sys.stderr)
        return 2

    print(_summary(args.command, resp))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
