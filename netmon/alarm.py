from __future__ import annotations

import contextlib
import io
import os
import shutil
import subprocess
import tempfile
import threading
from typing import Optional

import numpy as np
import soundfile as sf

from .constants import ALARM_FREQUENCY_HZ, ALARM_TONE_MS

# Command-line players tried in order when none is configured.
PLAYERS = ("paplay", "aplay", "afplay")


class AlarmError(RuntimeError):
    """The alarm device could not start or stop playback."""


def synthesize_tone(frequency_hz: float = ALARM_FREQUENCY_HZ, duration_ms: int = ALARM_TONE_MS,
                    sample_rate: int = 44100, amplitude: int = 10000) -> np.ndarray:
    """Return a mono sine tone as 16-bit PCM samples."""
    samples = int(sample_rate * duration_ms / 1000)
    theta = 2.0 * np.pi * float(frequency_hz) / sample_rate
    return (amplitude * np.sin(theta * np.arange(samples))).astype(np.int16)


def tone_wav_bytes(frequency_hz: float = ALARM_FREQUENCY_HZ, duration_ms: int = ALARM_TONE_MS,
                   sample_rate: int = 44100) -> bytes:
    """Encode synthesize_tone() output as an in-memory WAV file."""
    buf = io.BytesIO()
    sf.write(buf, synthesize_tone(frequency_hz, duration_ms, sample_rate), sample_rate,
             format="WAV", subtype="PCM_16")
    return buf.getvalue()


def find_player(preferred: Optional[str] = None) -> Optional[str]:
    """Resolve the player executable, or None if nothing usable is on PATH."""
    for name in ([preferred] if preferred else PLAYERS):
        path = shutil.which(name)
        if path:
            return path
    return None


class ToneAlarm:
    """Looping alarm tone played through an external command-line player.

    start() writes the tone to a temporary WAV file and launches the player
    once in the caller's thread, so a missing or broken player surfaces as
    AlarmError right away. A background thread then relaunches the player
    each time it finishes until stop()."""
    def __init__(self, player: Optional[str] = None):
        self.player = player
        self._lock = threading.Lock()
        self._stop_evt: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._proc: Optional[subprocess.Popen] = None
        self._wav_path: Optional[str] = None

    @property
    def playing(self) -> bool:
        return self._thread is not None

    def _spawn(self, player: str, path: str) -> subprocess.Popen:
        return subprocess.Popen(
            [player, path],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            stdin=subprocess.DEVNULL,
        )

    def start(self, frequency_hz: float = ALARM_FREQUENCY_HZ, tone_ms: int = ALARM_TONE_MS):
        """Start looping the tone. No-op while already playing."""
        with self._lock:
            if self._thread is not None:
                return
            player = find_player(self.player)
            if player is None:
                wanted = self.player or "/".join(PLAYERS)
                raise AlarmError(f"no audio player found ({wanted})")

            fd, path = tempfile.mkstemp(prefix="netmon-alarm-", suffix=".wav")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(tone_wav_bytes(frequency_hz, tone_ms))
                proc = self._spawn(player, path)
            except (OSError, sf.LibsndfileError) as e:
                with contextlib.suppress(OSError):
                    os.remove(path)
                raise AlarmError(f"could not play alarm tone: {e}") from e

            self._wav_path = path
            self._proc = proc
            self._stop_evt = threading.Event()
            self._thread = threading.Thread(
                target=self._loop, args=(player, path, tone_ms, self._stop_evt),
                name="netmon-alarm", daemon=True,
            )
            self._thread.start()

    def _loop(self, player: str, path: str, tone_ms: int, stop_evt: threading.Event):
        while not stop_evt.is_set():
            with self._lock:
                proc = self._proc
            if proc is None:
                return
            rc = proc.wait()
            # A player that keeps failing (e.g. no sound server) must not spin.
            if rc != 0 and stop_evt.wait(tone_ms / 1000.0):
                return
            with self._lock:
                if stop_evt.is_set():
                    return
                try:
                    self._proc = self._spawn(player, path)
                except OSError:
                    self._proc = None
                    return

    def stop(self):
        """Stop playback and clean up. No-op when silent."""
        with self._lock:
            if self._thread is None:
                return
            self._stop_evt.set()
            proc, thread, path = self._proc, self._thread, self._wav_path
            self._proc = self._thread = self._stop_evt = self._wav_path = None
            if proc is not None and proc.poll() is None:
                proc.terminate()
        thread.join(timeout=2.0)
        if path:
            with contextlib.suppress(OSError):
                os.remove(path)


class SilentAlarm:
    """Alarm device for visual/log-only operation."""
    playing = False

    def start(self, frequency_hz: float = ALARM_FREQUENCY_HZ, tone_ms: int = ALARM_TONE_MS):
        self.playing = True

    def stop(self):
        self.playing = False
