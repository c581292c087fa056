import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
import requests

from netmon.monitor import ConnectivityMonitor
from netmon.probe import ConnectivityProber
from netmon.state import ConnectivityStatus

from conftest import CapturingLogger, RecordingAlarm, StatusRecorder, wait_for

pytestmark = pytest.mark.integration


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        if self.path == "/generate_204":
            self.send_response(204)
            self.end_headers()
        elif self.path == "/ok":
            body = b"hello"
            self.send_response(200)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
        elif self.path == "/error":
            self.send_response(500)
            self.send_header("Content-Length", "0")
            self.end_headers()
        elif self.path == "/portal":
            # Captive portals typically redirect instead of answering 204.
            self.send_response(302)
            self.send_header("Location", "http://portal.invalid/login")
            self.send_header("Content-Length", "0")
            self.end_headers()
        elif self.path == "/slow":
            time.sleep(2.0)
            self.send_response(204)
            self.end_headers()
        else:
            self.send_response(404)
            self.send_header("Content-Length", "0")
            self.end_headers()

    def log_message(self, *args):
        pass


@pytest.fixture
def http_base():
    srv = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    srv.daemon_threads = True
    t = threading.Thread(target=srv.serve_forever, daemon=True)
    t.start()
    yield f"http://127.0.0.1:{srv.server_address[1]}"
    srv.shutdown()
    srv.server_close()


def _closed_port() -> int:
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


def test_no_content_answer_is_connected(http_base):
    prober = ConnectivityProber(url=http_base + "/generate_204", timeout_s=2.0)
    try:
        result = prober.probe()
    finally:
        prober.close()
    assert result.ok is True
    assert result.status_code == 204
    assert result.error is None


def test_any_2xx_answer_is_connected(http_base):
    prober = ConnectivityProber(url=http_base + "/ok", timeout_s=2.0)
    assert prober.probe().ok is True
    prober.close()


@pytest.mark.parametrize("path, code", [("/error", 500), ("/portal", 302), ("/missing", 404)])
def test_non_success_status_is_unreachable(http_base, path, code):
    prober = ConnectivityProber(url=http_base + path, timeout_s=2.0)
    result = prober.probe()
    prober.close()
    assert result.ok is False
    assert result.status_code == code
    assert result.error == f"HTTP {code}"


def test_connection_refused_is_unreachable_not_raised():
    prober = ConnectivityProber(url=f"http://127.0.0.1:{_closed_port()}/generate_204", timeout_s=1.0)
    result = prober.probe()
    prober.close()
    assert result.ok is False
    assert result.status_code is None
    assert "ConnectionError" in result.error


def test_malformed_url_is_unreachable_not_raised():
    prober = ConnectivityProber(url="not a url", timeout_s=1.0)
    result = prober.probe()
    assert result.ok is False
    assert result.error


def test_timeout_is_bounded(http_base):
    prober = ConnectivityProber(url=http_base + "/slow", timeout_s=0.3)
    t0 = time.monotonic()
    result = prober.probe()
    elapsed = time.monotonic() - t0
    prober.close()
    assert result.ok is False
    assert "Timeout" in result.error
    assert elapsed < 1.5


def test_per_call_timeout_overrides_default(http_base):
    prober = ConnectivityProber(url=http_base + "/slow", timeout_s=30.0)
    t0 = time.monotonic()
    assert prober.probe(timeout=0.3).ok is False
    assert time.monotonic() - t0 < 1.5
    prober.close()


def test_prober_reuses_one_session():
    class FakeResponse:
        status_code = 204

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

    class FakeSession:
        def __init__(self):
            self.headers = {}
            self.gets = []
            self.closed = False

        def get(self, url, **kwargs):
            self.gets.append((url, kwargs))
            if len(self.gets) == 2:
                raise requests.ConnectionError("reset by peer")
            return FakeResponse()

        def close(self):
            self.closed = True

    session = FakeSession()
    prober = ConnectivityProber(url="https://example.invalid/generate_204", timeout_s=4.0, session=session)
    assert prober.probe().ok is True
    assert prober.probe().ok is False
    assert prober.probe().ok is True
    assert len(session.gets) == 3
    assert session.gets[0][1]["timeout"] == (4.0, 4.0)
    assert session.headers["User-Agent"].startswith("netmon/")
    prober.close()
    assert session.closed is True


@pytest.mark.parametrize("timeout", [0, -1])
def test_non_positive_timeout_is_rejected(timeout):
    with pytest.raises(ValueError):
        ConnectivityProber(timeout_s=timeout)


def test_monitor_with_hanging_endpoint_reports_disconnected_every_cycle(http_base):
    logger = CapturingLogger()
    sink = StatusRecorder()
    alarm = RecordingAlarm()
    prober = ConnectivityProber(url=http_base + "/slow", timeout_s=0.3)
    mon = ConnectivityMonitor(prober=prober, alarm=alarm, logger=logger, interval_s=1, on_status=sink, verbose=True)

    mon.start()
    try:
        assert wait_for(lambda: len(sink.statuses) >= 2, timeout=5.0)
    finally:
        mon.close()

    assert set(sink.statuses) == {ConnectivityStatus.DISCONNECTED}
    probes = [f for e, f in logger.events if e == "probe"]
    assert probes
    assert all(p["elapsed_s"] < 0.3 + 0.5 for p in probes)
    assert alarm.calls == ["start", "stop"]
