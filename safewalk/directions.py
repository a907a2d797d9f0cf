"""Walking directions search with route alternatives and safety scoring."""

import os
import re
import threading
from concurrent.futures import Future
from datetime import datetime
from typing import Callable, Optional

import requests

from .config import CONFIG
from .models import RouteResult

ROUTE_NAMES = ["Recommended Safe Route", "Alternative Route", "Shortest Route"]
# Statuses Google reports for temporary conditions on its side
RETRYABLE_STATUSES = {"OVER_QUERY_LIMIT", "UNKNOWN_ERROR"}


class DirectionsError(Exception):
    """Raised when no usable routes can be obtained.

    retryable is set for failures that may clear on a later attempt, such as
    network errors and 5xx responses. A definitive answer like ZERO_RESULTS is
    not retryable.
    """

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class MapsLoader:
    """Loads the maps service once and shares it with every caller.

    load() returns the same Future to all callers; the first call performs the
    load and resolves it, callers arriving while it runs wait on the Future.
    """

    def __init__(self, api_key: Optional[str] = None,
                 session_factory: Callable[[], requests.Session] = requests.Session):
        self.api_key = api_key
        self._session_factory = session_factory
        self._lock = threading.Lock()
        self._future: Optional[Future] = None

    def load(self) -> Future:
        with self._lock:
            if self._future is not None:
                return self._future
            future = self._future = Future()
        try:
            future.set_result(self._create_session())
        except DirectionsError as e:
            future.set_exception(e)
        return future

    def when_loaded(self, callback: Callable[[Future], None]):
        """Call back with the load Future once it is resolved"""
        self.load().add_done_callback(callback)

    @property
    def is_loaded(self) -> bool:
        future = self._future
        return future is not None and future.done() and future.exception() is None

    def _create_session(self) -> requests.Session:
        key = self.api_key or os.environ.get(CONFIG["maps_api_key_env"])
        if not key:
            raise DirectionsError(
                f"No maps API key configured (set {CONFIG['maps_api_key_env']})"
            )
        session = self._session_factory()
        session.params = {"key": key}
        return session


def calculate_safety_score(distance_m: float, index: int, hour: int) -> tuple[int, dict]:
    """Simulated safety analysis for a route alternative.

    Returns (score, factors).
    """
    is_night = hour < 6 or hour > 20

    # First alternative usually follows main roads
    base_scores = [85, 65, 40]
    base_score = base_scores[index] if index < len(base_scores) else 50
    time_adjustment = -15 if is_night else 0
    distance_bonus = 5 if distance_m / 1000 > 3 else 0

    final_score = min(100, max(0, base_score + time_adjustment + distance_bonus))

    def level(score: float, kind: str) -> str:
        if kind == "crime":
            if score >= 70:
                return "Low"
            if score >= 40:
                return "Moderate"
            return "High"
        if score >= 70:
            return "Good"
        if score >= 40:
            return "Average"
        return "Poor"

    factors = {
        "crime": level(final_score, "crime"),
        "lighting": level(final_score + (10 if index == 0 else -10), "other"),
        "traffic": "Moderate" if index == 0 else "High" if index == 1 else "Low",
        "time": "High Risk" if is_night else "Low Risk",
    }
    return round(final_score), factors


def extract_via(steps: list[dict], limit: int = 3) -> list[str]:
    """Main street names taken from step instructions"""
    names = []
    for step in steps:
        html = step.get("html_instructions") or ""
        # Drop trailing notes like "Destination will be on the right"
        html = re.sub(r"<div.*?</div>", "", html)
        text = re.sub(r"<[^>]+>", "", html).strip()
        match = re.search(r"\b(?:onto|on|via)\s+(.+)$", text, re.IGNORECASE)
        if match:
            name = match.group(1).strip()
            if name and name not in names:
                names.append(name)
        if len(names) >= limit:
            break
    return names


class DirectionsClient:
    """Walking route alternatives from the Google Directions API"""

    def __init__(self, loader: MapsLoader, url: Optional[str] = None,
                 timeout: Optional[float] = None,
                 max_alternatives: Optional[int] = None):
        self.loader = loader
        self.url = url or CONFIG["directions_url"]
        self.timeout = timeout or CONFIG["directions_timeout"]
        self.max_alternatives = max_alternatives or CONFIG["max_route_alternatives"]

    def get_routes(self, origin: str, destination: str,
                   now: Optional[datetime] = None) -> list[RouteResult]:
        """Fetch alternatives, safest first"""
        session = self.loader.load().result()
        try:
            response = session.get(self.url, params={
                "origin": origin,
                "destination": destination,
                "mode": "walking",
                "alternatives": "true",
            }, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise DirectionsError(f"Directions request failed: {e}",
                                  retryable=status is None or status >= 500) from e
        except (requests.RequestException, ValueError) as e:
            raise DirectionsError(f"Directions request failed: {e}", retryable=True) from e

        status = data.get("status")
        if status in RETRYABLE_STATUSES:
            raise DirectionsError(f"Directions service busy: {status}", retryable=True)
        if status != "OK" or not data.get("routes"):
            raise DirectionsError("Could not find routes. Please check your locations.")

        hour = (now or datetime.now()).hour
        results = [
            self._to_result(route, index, hour, destination)
            for index, route in enumerate(data["routes"][:self.max_alternatives])
        ]
        results.sort(key=lambda r: r.safety_score, reverse=True)
        return results

    @staticmethod
    def _to_result(route: dict, index: int, hour: int, destination: str) -> RouteResult:
        legs = route.get("legs") or [{}]
        leg = legs[0]
        distance = leg.get("distance") or {}
        duration = leg.get("duration") or {}
        score, factors = calculate_safety_score(distance.get("value", 0), index, hour)
        via_names = extract_via(leg.get("steps", []))
        via = ", ".join(via_names) if via_names else route.get("summary") or "Direct route"
        return RouteResult(
            path=(route.get("overview_polyline") or {}).get("points", ""),
            destination_text=leg.get("end_address", destination),
            distance_text=distance.get("text", "Unknown"),
            duration_text=duration.get("text", "Unknown"),
            via=via,
            route_id=f"route-{index}",
            name=ROUTE_NAMES[index] if index < len(ROUTE_NAMES) else f"Route {index + 1}",
            safety_score=score,
            factors=factors,
        )
