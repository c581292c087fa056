from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import requests

from .constants import DEFAULT_PROBE_TIMEOUT_S, DEFAULT_PROBE_URL, VERSION
from .util import now_s


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one reachability check.

    `ok` is the only field the monitor acts on. The rest is kept for logs and
    the doctor output."""
    ok: bool
    status_code: Optional[int] = None
    elapsed_s: float = 0.0
    error: Optional[str] = None

    def __bool__(self) -> bool:
        return self.ok


class ConnectivityProber:
    """Single-request reachability probe against a content-less endpoint.

    Holds one requests.Session for the lifetime of the prober so short poll
    intervals reuse pooled connections instead of opening a new socket per
    check. Transport failures are returned as ok=False, never raised."""
    def __init__(self, url: str = DEFAULT_PROBE_URL, timeout_s: float = DEFAULT_PROBE_TIMEOUT_S,
                 session: Optional[requests.Session] = None):
        if timeout_s is None or float(timeout_s) <= 0:
            raise ValueError(f"probe timeout must be positive, got {timeout_s!r}")
        self.url = url
        self.timeout_s = float(timeout_s)
        self._session = session or requests.Session()
        self._session.headers["User-Agent"] = f"netmon/{VERSION}"

    def probe(self, timeout: Optional[float] = None) -> ProbeResult:
        """Issue one GET and report whether it came back with a 2xx status.

        Only the response headers are read. The timeout applies to both the
        connect and the read phase."""
        t = self.timeout_s if timeout is None else float(timeout)
        started = now_s()
        try:
            with self._session.get(self.url, timeout=(t, t), stream=True, allow_redirects=False) as resp:
                code = resp.status_code
        except requests.RequestException as e:
            return ProbeResult(ok=False, elapsed_s=now_s() - started,
                               error=f"{type(e).__name__}: {e}")

        elapsed = now_s() - started
        # 204 No Content is the expected answer; any other 2xx still proves reachability.
        if 200 <= code < 300:
            return ProbeResult(ok=True, status_code=code, elapsed_s=elapsed)
        return ProbeResult(ok=False, status_code=code, elapsed_s=elapsed, error=f"HTTP {code}")

    def close(self):
        """Release pooled connections."""
        self._session.close()
