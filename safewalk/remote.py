"""Upload of location updates to a REST endpoint."""

import queue
import threading
from typing import Optional

import requests

from .config import CONFIG
from .models import LocationRecord

_STOP = object()


class RemoteLocationSink:
    """Posts location records to an HTTP endpoint from a background thread.

    record_location() only enqueues, so a slow or unreachable server never
    holds up navigation. Failed uploads are counted and reported, not retried.
    """

    def __init__(self, url: str, api_key: Optional[str] = None,
                 session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None):
        self.url = url
        self.timeout = timeout or CONFIG["remote_timeout"]
        self.session = session or requests.Session()
        if api_key:
            self.session.headers.update({
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
            })
        self.sent = 0
        self.failed = 0
        self._queue: queue.Queue = queue.Queue()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def record_location(self, record: LocationRecord):
        self._queue.put(record)

    def _run(self):
        while True:
            record = self._queue.get()
            if record is _STOP:
                return
            payload = {
                "session_id": record.session_id,
                "latitude": record.lat,
                "longitude": record.lon,
                "recorded_at": record.timestamp,
            }
            try:
                response = self.session.post(self.url, json=payload, timeout=self.timeout)
                response.raise_for_status()
                self.sent += 1
            except requests.RequestException as e:
                self.failed += 1
                print(f"Location upload error: {e}")

    def close(self, timeout: float = 5.0):
        """Flush queued records and stop the upload thread"""
        self._queue.put(_STOP)
        self._thread.join(timeout=timeout)
