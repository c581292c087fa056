from __future__ import annotations

import contextlib
import json
import os
import socket
import threading
from dataclasses import asdict
from typing import Optional

from .constants import CONTROL_CHECK, CONTROL_INTERVAL, CONTROL_START, CONTROL_STATUS, CONTROL_STOP, VERSION

# ---------------- Local control socket ----------------
# Lets netmonctl (or a status bar script) drive a running daemon: query state,
# start/stop monitoring, force a check, change the interval.


class ControlServer:
    """Line-oriented UNIX socket front end for a ConnectivityMonitor.

    Each connection carries a single command line and gets back a single
    line of JSON. Supported commands: status, start, stop, check, interval N.
    """
    def __init__(self, monitor, logger, sock_path: str):
        self.monitor = monitor
        self.logger = logger
        self.sock_path = sock_path
        self._stop_evt = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        if not self.sock_path:
            return
        t = threading.Thread(target=self._loop, name="netmon-control", daemon=True)
        t.start()
        self._thread = t
        self.logger.emit("control_socket_started", path=self.sock_path)

    def stop(self, timeout: float = 1.0):
        self._stop_evt.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def _bind(self) -> Optional[socket.socket]:
        path = self.sock_path
        parent = os.path.dirname(path)
        srv = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            if parent:
                os.makedirs(parent, exist_ok=True)
            # Remove a stale socket left by an earlier run.
            if os.path.exists(path):
                os.remove(path)
            srv.bind(path)
            os.chmod(path, 0o660)
            srv.listen(4)
            srv.settimeout(0.5)
        except OSError as e:
            self.logger.emit("control_socket_error", error=str(e), path=path)
            srv.close()
            return None
        return srv

    def _loop(self):
        srv = self._bind()
        if srv is None:
            return

        try:
            while not self._stop_evt.is_set():
                try:
                    conn, _ = srv.accept()
                except socket.timeout:
                    continue
                except OSError as e:
                    self.logger.emit("control_socket_error", error=str(e), path=self.sock_path)
                    break
                with conn:
                    self._serve(conn)
        finally:
            srv.close()
            with contextlib.suppress(OSError):
                os.remove(self.sock_path)

    def _serve(self, conn: socket.socket):
        try:
            conn.settimeout(2.0)
            data = b""
            while b"\n" not in data and len(data) < 4096:
                chunk = conn.recv(4096)
                if not chunk:
                    break
                data += chunk
            line = data.decode("utf-8", errors="replace")
            try:
                resp = self.handle_command(line)
            except Exception as e:
                # A failing command must not take the control thread down with it.
                self.logger.emit("control_command_error", command=line.strip(), error=f"{type(e).__name__}: {e}")
                resp = {"ok": False, "error": f"{type(e).__name__}: {e}"}
            conn.sendall((json.dumps(resp, sort_keys=True) + "\n").encode("utf-8"))
        except OSError as e:
            # Client went away mid-exchange; nothing left to answer.
            self.logger.emit("control_socket_error", error=str(e), path=self.sock_path)

    def handle_command(self, line: str) -> dict:
        parts = (line or "").strip().lower().split()
        if not parts:
            return {"ok": False, "error": "empty command"}
        cmd, args = parts[0], parts[1:]

        if cmd in (CONTROL_STATUS, "state"):
            return {"ok": True, "state": asdict(self.monitor.snapshot()), "version": VERSION}

        if cmd == CONTROL_START:
            try:
                interval = args[0] if args else None
                started = self.monitor.start(interval)
            except ValueError as e:
                return {"ok": False, "error": str(e)}
            return {"ok": True, "started": started}

        if cmd == CONTROL_STOP:
            return {"ok": True, "stopped": self.monitor.stop()}

        if cmd in (CONTROL_CHECK, "check-now"):
            status = self.monitor.check_now()
            return {"ok": True, "status": status.value}

        if cmd == CONTROL_INTERVAL:
            if not args:
                return {"ok": True, "interval_s": self.monitor.interval_s}
            try:
                value = self.monitor.set_interval(args[0])
            except ValueError as e:
                return {"ok": False, "error": str(e)}
            return {"ok": True, "interval_s": value}

        return {"ok": False, "error": f"unknown command: {cmd}"}
