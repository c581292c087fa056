from __future__ import annotations
import threading
from typing import Optional
import requests

PUSHOVER_URL = "https://api.pushover.net/1/messages.json"


class Notifier:
    """Optional Pushover push messages (outage recovered, monitor fault).

    Sending happens on a short-lived daemon thread so a slow or unreachable
    API never delays the monitor loop."""
    def __init__(self, enabled: bool, pushover_token: Optional[str], pushover_user: Optional[str],
                 timeout_s: float = 5.0, logger=None):
        self.enabled = enabled and bool(pushover_token and pushover_user)
        self._token = pushover_token
        self._user = pushover_user
        self._timeout = timeout_s
        self._logger = logger

    def send(self, title: str, message: str, priority: int = 0):
        if not self.enabled:
            return
        threading.Thread(target=self.send_sync, args=(title, message, priority), daemon=True).start()

    def send_sync(self, title: str, message: str, priority: int = 0) -> bool:
        """Post one message; returns True on HTTP success. Never raises."""
        try:
            resp = requests.post(
                PUSHOVER_URL,
                data={
                    "token": self._token,
                    "user": self._user,
                    "title": title,
                    "message": message,
                    "priority": priority,
                },
                timeout=self._timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            if self._logger is not None:
                self._logger.emit("notify_error", error=str(e))
            return False
        return True
