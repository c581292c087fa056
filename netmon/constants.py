from __future__ import annotations

VERSION = "1.0.0"

# Content-less endpoint answering 204; cheap to hit every few seconds.
DEFAULT_PROBE_URL = "https://clients3.google.com/generate_204"
DEFAULT_PROBE_TIMEOUT_S = 6.0

DEFAULT_INTERVAL_S = 5
MIN_INTERVAL_S = 1
MAX_INTERVAL_S = 3600

ALARM_FREQUENCY_HZ = 800.0
ALARM_TONE_MS = 1000

DEFAULT_CONTROL_SOCKET = "/run/netmon/netmon.sock"

CONTROL_STATUS = "status"
CONTROL_START = "start"
CONTROL_STOP = "stop"
CONTROL_CHECK = "check"
CONTROL_INTERVAL = "interval"


USAGE_EXAMPLES = """\
Usage examples:
  # Poll every 5 seconds and sound an 800 Hz alarm while offline
  python net-monitor.py

  # Slower polling, different endpoint, structured logs
  python net-monitor.py --interval 30 --url http://connectivitycheck.gstatic.com/generate_204 --json

  # Visual/log only (no alarm sound)
  python net-monitor.py --silent

  # Single check, exit status 0 when online and 1 when offline
  python net-monitor.py --once

  # Endpoint and sound diagnostics
  python net-monitor.py --doctor --test-alarm
"""
