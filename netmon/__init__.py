"""netmon package for net-monitor."""

from .state import ConnectivityStatus, MonitorState
from .probe import ConnectivityProber, ProbeResult
from .monitor import ConnectivityMonitor

__all__ = ["ConnectivityStatus", "MonitorState", "ConnectivityProber", "ProbeResult", "ConnectivityMonitor"]
