"""Audio/Text-to-speech announcements for SafeWalk."""

import queue
import subprocess
import threading
from typing import Optional, Callable

from .events import (
    Arrived,
    GpsError,
    NavigationStarted,
    NavigationStopped,
    OffRouteCleared,
    OffRouteEntered,
)


def message_for(event) -> Optional[str]:
    """Text announced for a navigation event, None for silent events"""
    if isinstance(event, NavigationStarted):
        return "GPS navigation started. Acquiring your location."
    if isinstance(event, OffRouteEntered):
        return "Off route. You have deviated from the route. Please return to the path."
    if isinstance(event, OffRouteCleared):
        return "Back on route."
    if isinstance(event, Arrived):
        return "You have arrived. You have reached your destination."
    if isinstance(event, NavigationStopped):
        if event.reason == "restart":
            return None
        return "Navigation stopped. GPS tracking has been stopped."
    if isinstance(event, GpsError):
        return f"GPS error. {event.message}"
    return None


class Audio:
    """Text-to-speech for navigation announcements.

    Speech runs on a background thread so announcing from the event loop
    returns at once; messages are spoken in the order they were queued.
    """

    callback: Optional[Callable[[str], None]] = None  # Class-level callback for debug GUI
    _queue: queue.Queue = queue.Queue()
    _worker: Optional[threading.Thread] = None
    _lock = threading.Lock()

    @classmethod
    def set_callback(cls, callback: Optional[Callable[[str], None]]):
        """Set callback function for audio events"""
        cls.callback = callback

    @staticmethod
    def speak(text: str):
        """Speak text using espeak (available in Termux), blocking until done"""
        try:
            subprocess.run(
                ["espeak", "-s", "150", text],
                capture_output=True,
                timeout=10
            )
        except (FileNotFoundError, subprocess.TimeoutExpired):
            print(f"[AUDIO] {text}")

    @classmethod
    def say(cls, text: str):
        """Queue text for the speech thread"""
        if cls.callback:
            cls.callback(text)
        with cls._lock:
            if cls._worker is None or not cls._worker.is_alive():
                cls._worker = threading.Thread(target=cls._run, daemon=True)
                cls._worker.start()
        cls._queue.put(text)

    @classmethod
    def _run(cls):
        while True:
            text = cls._queue.get()
            try:
                cls.speak(text)
            finally:
                cls._queue.task_done()

    @classmethod
    def wait(cls):
        """Block until every queued announcement has been spoken"""
        cls._queue.join()

    @classmethod
    def announce(cls, event):
        """Queue the announcement for an event, if it has one"""
        text = message_for(event)
        if text:
            cls.say(text)
