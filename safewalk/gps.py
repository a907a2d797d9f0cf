"""Position sources: live GPS, trace recording and trace playback.

A position source delivers samples to callbacks until unsubscribed:

    handle = source.subscribe(on_sample, on_error, options)
    source.unsubscribe(handle)

on_sample receives a PositionSample, on_error a PositionError. Callbacks may
be invoked from a background thread.
"""

import itertools
import json
import subprocess
import threading
import time
from datetime import datetime
from typing import Callable, Optional

from .config import CONFIG
from .models import (
    GeoPoint,
    GeolocationOptions,
    GpsErrorKind,
    PositionError,
    PositionSample,
)


class TermuxPositionSource:
    """GPS access via Termux API, polled on a background thread per subscription"""

    def __init__(self, poll_interval: Optional[float] = None):
        self.poll_interval = poll_interval if poll_interval is not None else CONFIG["gps_poll_interval"]
        self.last_sample: Optional[PositionSample] = None
        self.consecutive_failures = 0
        self._ids = itertools.count(1)
        self._subscriptions: dict[int, threading.Event] = {}

    def subscribe(self, on_sample: Callable, on_error: Callable,
                  options: GeolocationOptions) -> int:
        handle = next(self._ids)
        stop = threading.Event()
        self._subscriptions[handle] = stop
        thread = threading.Thread(
            target=self._watch, args=(stop, on_sample, on_error, options), daemon=True
        )
        thread.start()
        return handle

    def unsubscribe(self, handle: int):
        stop = self._subscriptions.pop(handle, None)
        if stop:
            stop.set()

    def _watch(self, stop: threading.Event, on_sample: Callable, on_error: Callable,
               options: GeolocationOptions):
        while not stop.is_set():
            sample, error = self.read(options)
            if stop.is_set():
                break
            if sample:
                on_sample(sample)
            else:
                on_error(error)
                if error.kind.is_fatal:
                    break
            stop.wait(self.poll_interval)

    def read(self, options: GeolocationOptions) -> tuple[Optional[PositionSample], Optional[PositionError]]:
        """Take one reading from termux-location"""
        provider = "gps" if options.high_accuracy else "network"
        # "last" may return a cached fix, "once" always asks for a fresh one
        request = "once" if options.max_cache_age_ms == 0 else "last"
        try:
            result = subprocess.run(
                ["termux-location", "-p", provider, "-r", request],
                capture_output=True,
                text=True,
                timeout=options.timeout_ms / 1000
            )
        except subprocess.TimeoutExpired:
            return self._fail(GpsErrorKind.TIMEOUT)
        except FileNotFoundError:
            return self._fail(GpsErrorKind.UNSUPPORTED, "termux-location not found")

        if result.returncode != 0:
            error_msg = result.stderr.strip() if result.stderr else "unknown error"
            if "permission" in error_msg.lower():
                return self._fail(GpsErrorKind.PERMISSION_DENIED, error_msg)
            return self._fail(GpsErrorKind.POSITION_UNAVAILABLE, error_msg)

        if not result.stdout or not result.stdout.strip():
            return self._fail(GpsErrorKind.POSITION_UNAVAILABLE, "empty response")

        try:
            data = json.loads(result.stdout)
            sample = PositionSample(
                position=GeoPoint(lat=data["latitude"], lon=data["longitude"]),
                accuracy=data.get("accuracy"),
                heading=data.get("bearing"),
                speed=data.get("speed"),
                timestamp=time.time(),
            )
        except (json.JSONDecodeError, KeyError) as e:
            return self._fail(GpsErrorKind.POSITION_UNAVAILABLE, str(e))

        self.last_sample = sample
        self.consecutive_failures = 0
        return sample, None

    def _fail(self, kind: GpsErrorKind, detail: Optional[str] = None):
        self.consecutive_failures += 1
        return None, PositionError.of(kind, detail)

    def get_status(self) -> str:
        """Get GPS status string"""
        if self.consecutive_failures == 0:
            acc = ""
            if self.last_sample and self.last_sample.accuracy:
                acc = f", accuracy {self.last_sample.accuracy:.0f}m"
            return f"GPS OK{acc}"
        return f"GPS: {self.consecutive_failures} consecutive failures"


class PositionRecorder:
    """Wraps a position source and records everything it delivers"""

    def __init__(self, source, record_path: str):
        self.source = source
        self.record_path = record_path
        self.trace: list[dict] = []
        self.start_time = time.time()

    def subscribe(self, on_sample: Callable, on_error: Callable,
                  options: GeolocationOptions):
        def record_sample(sample: PositionSample):
            self._record(sample.to_dict(), None)
            on_sample(sample)

        def record_error(error: PositionError):
            self._record(None, error.kind.value)
            on_error(error)

        return self.source.subscribe(record_sample, record_error, options)

    def unsubscribe(self, handle):
        self.source.unsubscribe(handle)

    def _record(self, location: Optional[dict], error: Optional[str]):
        self.trace.append({
            "elapsed": time.time() - self.start_time,
            "timestamp": time.time(),
            "location": location,
            "error": error,
            "status": self.get_status(),
        })

    def get_status(self) -> str:
        return self.source.get_status() if hasattr(self.source, "get_status") else "recording"

    def save(self):
        """Save trace to file"""
        with open(self.record_path, "w") as f:
            json.dump({
                "recorded_at": datetime.now().isoformat(),
                "trace": self.trace
            }, f, indent=2)
        print(f"GPS trace saved to {self.record_path} ({len(self.trace)} entries)")


class PlaybackPositionSource:
    """Replays a recorded trace on a scheduler, honouring the recorded timing"""

    def __init__(self, playback_path: str, scheduler, speed: float = 1.0):
        if speed <= 0:
            raise ValueError("Playback speed must be positive")
        self.playback_path = playback_path
        self.scheduler = scheduler
        self.speed = speed
        self.index = 0
        self.last_sample: Optional[PositionSample] = None
        self.consecutive_failures = 0
        self._ids = itertools.count(1)
        self._subscriptions: dict[int, list] = {}

        with open(playback_path) as f:
            data = json.load(f)
            self.trace: list[dict] = data["trace"]
        print(f"Loaded GPS trace from {playback_path} ({len(self.trace)} entries)")

    @property
    def duration(self) -> float:
        """Seconds of scheduler time the replay takes"""
        if not self.trace:
            return 0.0
        return (self.trace[-1].get("elapsed", 0) - self.trace[0].get("elapsed", 0)) / self.speed

    def subscribe(self, on_sample: Callable, on_error: Callable,
                  options: GeolocationOptions) -> int:
        handle = next(self._ids)
        self.index = 0
        origin = self.trace[0].get("elapsed", 0) if self.trace else 0
        self._subscriptions[handle] = [
            self.scheduler.call_later(
                (entry.get("elapsed", 0) - origin) / self.speed,
                self._deliver, entry, on_sample, on_error,
            )
            for entry in self.trace
        ]
        return handle

    def unsubscribe(self, handle: int):
        for timer in self._subscriptions.pop(handle, []):
            timer.cancel()

    def _deliver(self, entry: dict, on_sample: Callable, on_error: Callable):
        self.index += 1
        if entry.get("location"):
            sample = PositionSample.from_dict(entry["location"])
            self.last_sample = sample
            self.consecutive_failures = 0
            on_sample(sample)
            return

        self.consecutive_failures += 1
        kind = GpsErrorKind(entry["error"]) if entry.get("error") else GpsErrorKind.POSITION_UNAVAILABLE
        on_error(PositionError.of(kind))

    def is_finished(self) -> bool:
        """Check if playback is complete"""
        return self.index >= len(self.trace)

    def get_status(self) -> str:
        progress = f"{self.index}/{len(self.trace)}"
        if self.consecutive_failures == 0:
            return f"Playback OK ({progress})"
        return f"Playback: {self.consecutive_failures} failures ({progress})"
