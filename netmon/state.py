from __future__ import annotations

import enum
from dataclasses import dataclass

from .constants import DEFAULT_INTERVAL_S


class ConnectivityStatus(str, enum.Enum):
    """Tri-state reachability as shown to the user."""
    UNKNOWN = "unknown"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"

    @classmethod
    def from_reachable(cls, reachable: bool) -> "ConnectivityStatus":
        return cls.CONNECTED if reachable else cls.DISCONNECTED


@dataclass
class MonitorState:
    """Snapshot of the monitor's runtime state.

    The monitor keeps one instance and mutates it under its lock; callers get
    copies via ConnectivityMonitor.snapshot(). The control socket serialises
    it with dataclasses.asdict for the `status` command."""
    status: ConnectivityStatus = ConnectivityStatus.UNKNOWN
    alarm_sounding: bool = False
    alarm_failed: bool = False
    running: bool = False
    interval_s: int = DEFAULT_INTERVAL_S

    last_check_ts: float = 0.0
    last_change_ts: float = 0.0
    disconnected_since_ts: float = 0.0

    checks_total: int = 0
    failures_total: int = 0
