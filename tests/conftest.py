import threading
import time

import pytest

from netmon.alarm import AlarmError
from netmon.monitor import ConnectivityMonitor
from netmon.probe import ProbeResult


class CapturingLogger:
    """Minimal logger that matches the monitor's .emit(event, **fields) contract."""
    def __init__(self):
        self.events = []

    def emit(self, event: str, **fields):
        self.events.append((event, fields))

    def names(self):
        return [e for e, _ in self.events]


class ScriptedProber:
    """Prober stub returning queued results in order, then repeating the last one.

    An entry may be an exception instance, which is raised instead of returned."""
    def __init__(self, results=(True,), timeout_s=0.5):
        self.results = list(results)
        self.timeout_s = timeout_s
        self.url = "http://probe.invalid/generate_204"
        self.calls = 0
        self.call_ts = []
        self.closed = False
        self._lock = threading.Lock()

    def probe(self, timeout=None):
        with self._lock:
            idx = self.calls
            self.calls += 1
            self.call_ts.append(time.monotonic())
        r = self.results[min(idx, len(self.results) - 1)]
        if isinstance(r, BaseException):
            raise r
        return ProbeResult(ok=bool(r), status_code=204 if r else None)

    def close(self):
        self.closed = True


class RecordingAlarm:
    """Alarm device stub recording start/stop calls."""
    def __init__(self, fail_start=False):
        self.fail_start = fail_start
        self.calls = []

    def start(self, frequency_hz, tone_ms):
        if self.fail_start:
            raise AlarmError("no audio device")
        self.calls.append("start")

    def stop(self):
        self.calls.append("stop")


class StatusRecorder:
    def __init__(self):
        self.statuses = []

    def __call__(self, status, ts):
        self.statuses.append(status)


def wait_for(pred, timeout=3.0, step=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if pred():
            return True
        time.sleep(step)
    return pred()


@pytest.fixture
def make_monitor():
    """Build a monitor wired to stub collaborators; stops every monitor it built."""
    built = []

    def _make(results=(True,), interval_s=1, alarm=None, prober=None, **kwargs):
        logger = CapturingLogger()
        sink = StatusRecorder()
        prober = prober or ScriptedProber(results)
        alarm = alarm or RecordingAlarm()
        mon = ConnectivityMonitor(
            prober=prober,
            alarm=alarm,
            logger=logger,
            interval_s=interval_s,
            on_status=sink,
            **kwargs,
        )
        built.append(mon)
        return mon, prober, alarm, sink, logger

    yield _make
    for mon in built:
        mon.stop(timeout=2.0)
