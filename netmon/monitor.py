from __future__ import annotations

import dataclasses
import threading
import time
from typing import Callable, Optional

from .alarm import AlarmError
from .constants import ALARM_FREQUENCY_HZ, ALARM_TONE_MS, DEFAULT_INTERVAL_S, DEFAULT_PROBE_TIMEOUT_S
from .logging import JsonLogger
from .state import ConnectivityStatus, MonitorState
from .util import clamp_interval

StatusSink = Callable[[ConnectivityStatus, float], None]


class _Session:
    """One run of the polling loop: its cancellation event and worker thread.

    A fresh session is built by every start(); once cancelled it is never
    reused, so a late probe result from an old thread can be recognised and
    dropped."""
    __slots__ = ("cancel_evt", "thread")

    def __init__(self):
        self.cancel_evt = threading.Event()
        self.thread: Optional[threading.Thread] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_evt.is_set()


class ConnectivityMonitor:
    """Internet connectivity monitor controller.

    Runs a background loop that probes the endpoint, reports every result to
    the status sink, and keeps the alarm sounding exactly while the last
    result was DISCONNECTED. start()/stop()/check_now() may be called from
    any thread. Sinks are invoked on whichever thread produced the result
    (the loop thread or the check_now() caller); redispatching to a UI
    thread is up to the sink."""
    def __init__(
        self,
        prober,
        alarm,
        logger: JsonLogger,
        interval_s: int = DEFAULT_INTERVAL_S,
        probe_timeout_s: Optional[float] = None,
        alarm_frequency_hz: float = ALARM_FREQUENCY_HZ,
        alarm_tone_ms: int = ALARM_TONE_MS,
        on_status: Optional[StatusSink] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        on_warning: Optional[Callable[[str], None]] = None,
        notifier=None,
        verbose: bool = False,
    ):
        """
        Initialize the monitor.

        Construction is side-effect free; the loop thread is created by start().
        probe_timeout_s defaults to the prober's own timeout.
        """
        self.prober = prober
        self.alarm = alarm
        self.logger = logger
        self.notifier = notifier
        self.verbose = bool(verbose)
        self.on_status = on_status
        self.on_error = on_error
        self.on_warning = on_warning

        if probe_timeout_s is None:
            probe_timeout_s = getattr(prober, "timeout_s", DEFAULT_PROBE_TIMEOUT_S)
        self.probe_timeout_s = float(probe_timeout_s)
        self.alarm_frequency_hz = float(alarm_frequency_hz)
        self.alarm_tone_ms = int(alarm_tone_ms)

        self.state = MonitorState(interval_s=clamp_interval(interval_s))
        # Guards state, the alarm and the session pointer. Reentrant so a sink
        # may call back into the monitor (e.g. stop() from on_status).
        self._lock = threading.RLock()
        self._session: Optional[_Session] = None

    # ---------------- Read-only views ----------------

    @property
    def running(self) -> bool:
        with self._lock:
            return self._session is not None

    @property
    def status(self) -> ConnectivityStatus:
        with self._lock:
            return self.state.status

    @property
    def alarm_sounding(self) -> bool:
        with self._lock:
            return self.state.alarm_sounding

    @property
    def interval_s(self) -> int:
        with self._lock:
            return self.state.interval_s

    @interval_s.setter
    def interval_s(self, seconds):
        self.set_interval(seconds)

    def snapshot(self) -> MonitorState:
        """Return a copy of the current state."""
        with self._lock:
            return dataclasses.replace(self.state)

    # ---------------- Lifecycle ----------------

    def set_interval(self, seconds) -> int:
        """Change the poll interval (clamped to 1-3600 s).

        The loop reads the interval at the top of each cycle, so a wait that is
        already in progress keeps its original length."""
        value = clamp_interval(seconds)
        with self._lock:
            if value != self.state.interval_s:
                self.state.interval_s = value
                self.logger.emit("interval_changed", interval_s=value)
        return value

    def start(self, interval_s=None) -> bool:
        """Start the polling loop. Returns False (and does nothing) if already running."""
        with self._lock:
            if self._session is not None:
                self.logger.emit("start_ignored", reason="already_running")
                return False
            if interval_s is not None:
                self.set_interval(interval_s)

            session = _Session()
            session.thread = threading.Thread(target=self._run, args=(session,), name="netmon-loop", daemon=True)
            self._session = session
            self.state.running = True
            self.logger.emit(
                "monitor_started",
                interval_s=self.state.interval_s,
                timeout_s=self.probe_timeout_s,
                url=getattr(self.prober, "url", None),
            )
            session.thread.start()
        return True

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Cancel the loop, revert status to UNKNOWN and silence the alarm.

        Idempotent: returns False when already idle. Waits for the loop thread
        to exit for at most `timeout` seconds (default: probe timeout + 1 s).
        A probe still in flight after that is abandoned; its result is dropped."""
        with self._lock:
            session = self._session
            if session is None:
                return False
            self._end_session(session, reason="stopped")
        self._join(session, timeout)
        return True

    def close(self):
        """Stop monitoring, silence an alarm left by check_now() and release the prober."""
        self.stop()
        with self._lock:
            self._stop_alarm()
        close = getattr(self.prober, "close", None)
        if close is not None:
            close()

    def check_now(self) -> ConnectivityStatus:
        """Probe once on the caller's thread and apply the result.

        Works whether or not the loop is running and leaves the loop's timer
        alone."""
        result = self.prober.probe(self.probe_timeout_s)
        return self._apply(result, session=None, source="manual")

    # ---------------- Loop ----------------

    def _run(self, session: _Session):
        """Loop thread entry point. One iteration per cycle until cancelled."""
        try:
            while not session.cancelled:
                with self._lock:
                    interval = self.state.interval_s
                result = self.prober.probe(self.probe_timeout_s)
                if self._apply(result, session=session, source="loop") is None:
                    break
                if session.cancel_evt.wait(interval):
                    break
        except Exception as e:
            self._fault(session, e)

    def _join(self, session: _Session, timeout: Optional[float]):
        t = session.thread
        if t is None or t is threading.current_thread():
            return
        if timeout is None:
            timeout = self.probe_timeout_s + 1.0
        t.join(timeout)

    def _end_session(self, session: _Session, reason: str):
        # Lock held by caller.
        session.cancel_evt.set()
        self._session = None
        self.state.running = False
        self._stop_alarm()
        if self.state.status is not ConnectivityStatus.UNKNOWN:
            self.state.last_change_ts = time.time()
        self.state.status = ConnectivityStatus.UNKNOWN
        self.state.disconnected_since_ts = 0.0
        self.logger.emit("monitor_stopped", reason=reason)

    def _fault(self, session: _Session, exc: BaseException):
        """Report an unexpected loop failure once, then end the session like stop()."""
        with self._lock:
            if self._session is not session:
                # Already stopped; the caller asked for it, nothing to report.
                self.logger.emit("monitor_fault", error=f"{type(exc).__name__}: {exc}", reason="after_stop")
                return
            self.logger.emit("monitor_fault", error=f"{type(exc).__name__}: {exc}")
        try:
            if self.on_error is not None:
                self.on_error(exc)
            if self.notifier is not None:
                self.notifier.send("Internet monitor stopped", f"Monitoring stopped due to an error: {exc}", priority=1)
        finally:
            with self._lock:
                if self._session is session:
                    self._end_session(session, reason="fault")

    # ---------------- Status / alarm ----------------

    def _apply(self, result, session: Optional[_Session], source: str) -> Optional[ConnectivityStatus]:
        """Record one probe result, notify the sink and update the alarm.

        Returns the new status, or None if the result belongs to a cancelled
        session and was dropped."""
        reachable = bool(result)
        status = ConnectivityStatus.from_reachable(reachable)
        with self._lock:
            if session is not None and (session.cancelled or self._session is not session):
                if self.verbose:
                    self.logger.emit("probe_discarded", ok=reachable)
                return None

            ts = time.time()
            if self.verbose:
                self.logger.emit(
                    "probe",
                    source=source,
                    ok=reachable,
                    status_code=getattr(result, "status_code", None),
                    elapsed_s=round(getattr(result, "elapsed_s", 0.0), 3),
                    error=getattr(result, "error", None),
                )
            self.state.checks_total += 1
            if not reachable:
                self.state.failures_total += 1
            self.state.last_check_ts = ts

            prev = self.state.status
            if status is ConnectivityStatus.CONNECTED:
                # Silence first: the alarm must never sound alongside CONNECTED.
                self._stop_alarm()
            if status is not prev:
                self._on_status_changed(prev, status, ts)
            self.state.status = status
            if status is ConnectivityStatus.DISCONNECTED:
                self._start_alarm()

            # Alarm already matches the status; a sink that stops the monitor
            # silences it again through stop().
            if self.on_status is not None:
                self.on_status(status, ts)
            return status

    def _on_status_changed(self, prev: ConnectivityStatus, status: ConnectivityStatus, ts: float):
        self.state.last_change_ts = ts
        outage_s = None
        if status is ConnectivityStatus.DISCONNECTED:
            self.state.disconnected_since_ts = ts
        elif self.state.disconnected_since_ts:
            outage_s = round(ts - self.state.disconnected_since_ts, 1)
            self.state.disconnected_since_ts = 0.0
        self.logger.emit("status_changed", status=status.value, previous=prev.value, outage_s=outage_s)
        if outage_s is not None and self.notifier is not None:
            self.notifier.send("Internet connection restored", f"Connection was down for {outage_s:.0f} s.")

    def _start_alarm(self):
        """Start the alarm unless it is sounding or failed during this outage."""
        if self.state.alarm_sounding or self.state.alarm_failed:
            return
        try:
            self.alarm.start(self.alarm_frequency_hz, self.alarm_tone_ms)
        except AlarmError as e:
            # Keep monitoring; do not retry until the connection comes back.
            self.state.alarm_failed = True
            self.logger.emit("alarm_error", error=str(e))
            self._warn(f"Could not play alarm sound: {e}")
            return
        self.state.alarm_sounding = True
        self.logger.emit("alarm_start", frequency_hz=self.alarm_frequency_hz, tone_ms=self.alarm_tone_ms)

    def _stop_alarm(self):
        """Stop the alarm if sounding and clear a latched alarm failure."""
        self.state.alarm_failed = False
        if not self.state.alarm_sounding:
            return
        self.state.alarm_sounding = False
        try:
            self.alarm.stop()
        except AlarmError as e:
            self.logger.emit("alarm_error", error=str(e))
            self._warn(f"Could not stop alarm sound: {e}")
            return
        self.logger.emit("alarm_stop")

    def _warn(self, message: str):
        if self.on_warning is not None:
            self.on_warning(message)
