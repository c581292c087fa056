#!/usr/bin/env python3
#
# Internet connectivity monitor
#
# Probes a content-less HTTP endpoint on a fixed interval and loops an alarm
# tone for as long as the endpoint cannot be reached.
#
# Run from a checkout without installing:  python net-monitor.py --help
#

from __future__ import annotations

from netmon.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
