import json
import socket

import pytest

import netmonctl
from netmon.control import ControlServer

from conftest import wait_for


def _send_cmd(sock_path: str, cmd: str) -> dict:
    s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    s.settimeout(2.0)
    s.connect(sock_path)
    s.sendall((cmd.strip() + "\n").encode())
    data = b""
    while b"\n" not in data:
        chunk = s.recv(4096)
        if not chunk:
            break
        data += chunk
    s.close()
    line = data.split(b"\n", 1)[0].decode(errors="replace").strip()
    return json.loads(line) if line else {}


@pytest.fixture
def control(make_monitor, tmp_path):
    mon, prober, alarm, sink, logger = make_monitor(results=[False], interval_s=3600)
    sock_path = tmp_path / "netmon.sock"
    srv = ControlServer(mon, logger, str(sock_path))
    srv.start()
    # Wait briefly for server thread to bind.
    assert wait_for(sock_path.exists, timeout=2.0)
    yield mon, prober, str(sock_path)
    srv.stop()


def test_status_reports_snapshot(control):
    mon, prober, path = control
    resp = _send_cmd(path, "status")
    assert resp["ok"] is True
    assert resp["state"]["status"] == "unknown"
    assert resp["state"]["running"] is False
    assert resp["state"]["interval_s"] == 3600
    assert resp["version"]


def test_start_stop_roundtrip(control):
    mon, prober, path = control
    assert _send_cmd(path, "start") == {"ok": True, "started": True}
    assert _send_cmd(path, "start") == {"ok": True, "started": False}
    assert wait_for(lambda: prober.calls == 1)
    assert _send_cmd(path, "status")["state"]["alarm_sounding"] is True

    assert _send_cmd(path, "stop") == {"ok": True, "stopped": True}
    assert _send_cmd(path, "stop") == {"ok": True, "stopped": False}
    state = _send_cmd(path, "status")["state"]
    assert state["status"] == "unknown"
    assert state["alarm_sounding"] is False


def test_check_and_interval_commands(control):
    mon, prober, path = control
    assert _send_cmd(path, "check") == {"ok": True, "status": "disconnected"}
    assert mon.running is False

    assert _send_cmd(path, "interval 30") == {"ok": True, "interval_s": 30}
    assert _send_cmd(path, "interval 0") == {"ok": True, "interval_s": 1}
    assert _send_cmd(path, "interval") == {"ok": True, "interval_s": 1}
    bad = _send_cmd(path, "interval soon")
    assert bad["ok"] is False and "invalid interval" in bad["error"]


def test_unknown_and_empty_commands(control):
    mon, prober, path = control
    assert _send_cmd(path, "reboot")["error"] == "unknown command: reboot"
    assert _send_cmd(path, " ")["error"] == "empty command"


def test_netmonctl_talks_to_daemon(control, capsys):
    mon, prober, path = control
    assert netmonctl.main(["check", "--socket", path]) == 0
    assert "status=disconnected" in capsys.readouterr().out

    assert netmonctl.main(["start", "15", "--socket", path]) == 0
    assert wait_for(lambda: mon.running)
    assert mon.interval_s == 15

    assert netmonctl.main(["status", "--socket", path]) == 0
    out = capsys.readouterr().out
    assert "running=True" in out and "interval_s=15" in out


def test_netmonctl_reports_missing_socket(tmp_path, capsys):
    assert netmonctl.main(["status", "--socket", str(tmp_path / "absent.sock")]) == 2
    assert "error:" in capsys.readouterr().err


def test_bind_failure_is_logged_not_raised(make_monitor, tmp_path):
    mon, prober, alarm, sink, logger = make_monitor()
    blocker = tmp_path / "file"
    blocker.write_text("x")
    # Parent "directory" is a regular file, so bind cannot succeed.
    srv = ControlServer(mon, logger, str(blocker / "netmon.sock"))
    srv.start()
    assert wait_for(lambda: "control_socket_error" in logger.names(), timeout=2.0)
    srv.stop()


def test_infinite_interval_is_clamped_and_server_keeps_serving(control):
    mon, prober, path = control
    assert _send_cmd(path, "interval inf") == {"ok": True, "interval_s": 3600}
    assert _send_cmd(path, "interval 1e400") == {"ok": True, "interval_s": 3600}
    assert _send_cmd(path, "status")["ok"] is True


def test_failing_command_is_reported_and_server_keeps_serving(control):
    mon, prober, path = control

    def broken_sink(status, ts):
        raise RuntimeError("display gone")

    mon.on_status = broken_sink
    resp = _send_cmd(path, "check")
    assert resp["ok"] is False
    assert "display gone" in resp["error"]
    state = _send_cmd(path, "status")["state"]
    assert state["status"] == "disconnected"
    assert state["alarm_sounding"] is True
