from __future__ import annotations

import socket
import time
from urllib.parse import urlsplit

from .alarm import AlarmError, ToneAlarm, find_player


def run_doctor(args, prober) -> int:
    """Print endpoint and sound diagnostics. Returns 0 when the probe succeeds."""
    print("Doctor Mode (safe):")
    print(f"  Endpoint: {prober.url}")
    print(f"  Timeout:  {prober.timeout_s:g}s")
    print()

    host = urlsplit(prober.url).hostname
    if not host:
        print("  FAIL: endpoint URL has no host")
    else:
        try:
            infos = socket.getaddrinfo(host, None)
        except socket.gaierror as e:
            print(f"  WARN: DNS lookup for {host} failed: {e}")
        else:
            addrs = sorted({info[4][0] for info in infos})
            print(f"  OK: {host} resolves to {', '.join(addrs)}")

    result = prober.probe()
    if result.ok:
        print(f"  OK: probe succeeded (HTTP {result.status_code}, {result.elapsed_s:.3f}s)")
    else:
        detail = result.error or "no response"
        print(f"  FAIL: probe failed after {result.elapsed_s:.3f}s: {detail}")

    print()
    if args.silent:
        print("  Alarm: disabled (--silent)")
    else:
        player = find_player(args.player)
        if player is None:
            print(f"  WARN: no audio player found ({args.player or 'paplay/aplay/afplay'}); alarm will be silent.")
        else:
            print(f"  OK: audio player {player}")
            if args.test_alarm:
                print(f"  Playing {args.frequency:g} Hz tone for 3 seconds...")
                alarm = ToneAlarm(player=player)
                try:
                    alarm.start(args.frequency, args.tone_ms)
                    time.sleep(3.0)
                except AlarmError as e:
                    print(f"  FAIL: {e}")
                finally:
                    alarm.stop()

    return 0 if result.ok else 1
