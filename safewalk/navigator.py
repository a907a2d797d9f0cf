"""Navigation state machine.

Turns the stream of raw position samples from a position source into a
NavigationState and one-shot notifications. Position callbacks only post
messages onto the inbox; the inbox is drained on the scheduler, so the session
is mutated by one callback at a time no matter which thread the source runs on.
"""

import queue
import time
import uuid
from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional

from .config import CONFIG
from .events import (
    Arrived,
    GpsError,
    NavigationStarted,
    NavigationStopped,
    OffRouteCleared,
    OffRouteEntered,
    StateUpdated,
)
from .geo import bearing, bearing_to_compass, decode_path, distance
from .logger import Logger
from .models import (
    GeoPoint,
    GeolocationOptions,
    LocationRecord,
    NavigationState,
    NavigationStatus,
    PositionError,
    PositionSample,
    RouteResult,
)
from .scheduler import SessionDisposer
from .tracking import (
    ArrivalDetector,
    ProgressEstimator,
    RouteDeviationDetector,
    format_distance,
    format_duration,
    step_for_progress,
)


def build_instructions(route: RouteResult) -> tuple[str, ...]:
    """Static instruction steps shown while walking a route"""
    via = route.via or "the highlighted route"
    return (
        "Head towards your destination",
        f"Continue via {via}",
        "Follow the highlighted route",
        "Continue on current path",
        "You are approaching your destination",
    )


@dataclass
class NavigationSession:
    """Mutable state of one tracking episode, owned by the state machine"""
    session_id: str
    status: NavigationStatus = NavigationStatus.INITIALIZING
    route: tuple = ()
    destination: Optional[GeoPoint] = None
    selected_route: Optional[RouteResult] = None
    instructions: tuple = ()
    total_distance_m: float = 0.0
    current_position: Optional[GeoPoint] = None
    previous_position: Optional[GeoPoint] = None
    accuracy: Optional[float] = None
    heading: Optional[float] = None
    speed: Optional[float] = None
    progress: float = 0.0
    distance_remaining_m: Optional[float] = None
    eta_seconds: Optional[float] = None
    distance_remaining_text: str = ""
    time_remaining_text: str = ""
    is_off_route: bool = False
    has_arrived: bool = False
    current_step: int = 0
    elapsed_seconds: int = 0
    last_error: Optional[PositionError] = None

    def snapshot(self) -> NavigationState:
        return NavigationState(
            status=self.status,
            session_id=self.session_id,
            route=self.route,
            destination=self.destination,
            selected_route=self.selected_route,
            current_position=self.current_position,
            previous_position=self.previous_position,
            accuracy=self.accuracy,
            heading=self.heading,
            speed=self.speed,
            progress=self.progress,
            distance_remaining_m=self.distance_remaining_m,
            eta_seconds=self.eta_seconds,
            distance_remaining_text=self.distance_remaining_text,
            time_remaining_text=self.time_remaining_text,
            is_off_route=self.is_off_route,
            has_arrived=self.has_arrived,
            current_step=self.current_step,
            instructions=self.instructions,
            elapsed_seconds=self.elapsed_seconds,
            last_error=self.last_error,
        )


@dataclass
class Calculators:
    deviation: RouteDeviationDetector
    progress: ProgressEstimator
    arrival: ArrivalDetector


def reduce_sample(session: NavigationSession, sample: PositionSample,
                  calculators: Calculators) -> list:
    """Fold one position sample into the session.

    Returns the discrete events (arrival, off-route transitions) the sample
    triggers. Scheduling side effects is left to the caller.
    """
    events = []
    position = sample.position

    # Fall back to the bearing of the last movement when the sensor gives none.
    # Standing still has no bearing, so the previous heading is kept.
    heading = sample.heading
    if heading is None and session.current_position is not None:
        if distance(session.current_position, position) >= CONFIG["heading_min_movement"]:
            heading = bearing(session.current_position, position)

    session.previous_position = session.current_position
    session.current_position = position
    if heading is not None:
        session.heading = heading
    if sample.accuracy is not None:
        session.accuracy = sample.accuracy
    if sample.speed is not None:
        session.speed = sample.speed
    session.status = NavigationStatus.TRACKING

    if session.destination is not None:
        remaining = calculators.progress.distance_remaining(position, session.destination)
        session.distance_remaining_m = remaining
        session.eta_seconds = calculators.progress.eta_seconds(remaining)
        session.distance_remaining_text = format_distance(remaining)
        session.time_remaining_text = format_duration(session.eta_seconds)

        if calculators.arrival.check(remaining, session.has_arrived):
            session.has_arrived = True
            events.append(Arrived(session.session_id, position, remaining))

        if session.has_arrived:
            session.progress = 100.0
        else:
            session.progress = calculators.progress.progress_percent(
                session.total_distance_m, remaining
            )

    off_route = calculators.deviation.is_off_route(position, session.route)
    if off_route and not session.is_off_route:
        events.append(OffRouteEntered(
            session.session_id, position,
            calculators.deviation.distance_from_route(position, session.route),
        ))
    elif session.is_off_route and not off_route:
        events.append(OffRouteCleared(session.session_id, position))
    session.is_off_route = off_route

    session.current_step = step_for_progress(
        session.progress, session.current_step, len(session.instructions)
    )
    return events


@dataclass(frozen=True)
class _SampleMessage:
    session_id: str
    sample: PositionSample


@dataclass(frozen=True)
class _ErrorMessage:
    session_id: str
    error: PositionError


class NavigationStateMachine:
    """Owns the active navigation session and its position subscription"""

    def __init__(self, source, scheduler, sinks=(), logger: Optional[Logger] = None,
                 deviation: Optional[RouteDeviationDetector] = None,
                 progress: Optional[ProgressEstimator] = None,
                 arrival: Optional[ArrivalDetector] = None,
                 options: Optional[GeolocationOptions] = None,
                 arrival_stop_delay: Optional[float] = None,
                 tick_interval: Optional[float] = None):
        self.source = source
        self.scheduler = scheduler
        self.sinks = list(sinks)
        self.logger = logger or Logger()
        self.calculators = Calculators(
            deviation=deviation or RouteDeviationDetector(),
            progress=progress or ProgressEstimator(),
            arrival=arrival or ArrivalDetector(),
        )
        self.options = options or GeolocationOptions.from_dict(CONFIG["geolocation_options"])
        self.arrival_stop_delay = (arrival_stop_delay if arrival_stop_delay is not None
                                   else CONFIG["arrival_stop_delay"])
        self.tick_interval = tick_interval or CONFIG["elapsed_tick_interval"]

        self._inbox: queue.SimpleQueue = queue.SimpleQueue()
        self._listeners: list[Callable] = []
        self._session: Optional[NavigationSession] = None
        self._disposer: Optional[SessionDisposer] = None

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> NavigationState:
        if self._session is None:
            return NavigationState()
        return self._session.snapshot()

    @property
    def status(self) -> NavigationStatus:
        return self._session.status if self._session else NavigationStatus.OFF

    def subscribe(self, listener: Callable) -> Callable[[], None]:
        """Register a listener for events; returns a function that removes it"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event):
        for listener in list(self._listeners):
            listener(event)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def start_navigation(self, route: RouteResult) -> SessionDisposer:
        """Start a new session for route, tearing down any active one first.

        Returns the disposer that owns the new session's subscription and timers.
        """
        if self._session is not None:
            self._teardown("restart")

        path = decode_path(route.path)
        session_id = uuid.uuid4().hex
        session = NavigationSession(
            session_id=session_id,
            route=path,
            destination=path[-1] if path else None,
            selected_route=route,
            instructions=build_instructions(route),
            total_distance_m=self.calculators.progress.total_distance(path),
            distance_remaining_text=route.distance_text,
            time_remaining_text=route.duration_text,
        )
        disposer = SessionDisposer(session_id)
        self._session = session
        self._disposer = disposer

        handle = self.source.subscribe(
            partial(self.post_sample, session_id),
            partial(self.post_error, session_id),
            self.options,
        )
        disposer.add(partial(self.source.unsubscribe, handle))
        disposer.add_timer(self.scheduler.call_every(self.tick_interval, self._on_tick, session_id))

        self.logger.log("Navigation started", {
            "session_id": session_id,
            "route": route.route_id,
            "points": len(path),
            "destination": session.destination.to_dict() if session.destination else None,
            "total_distance": round(session.total_distance_m, 1),
        })
        if not path:
            self.logger.log("Route path is empty, off-route and arrival detection disabled")

        self._emit(NavigationStarted(session_id, session.destination))
        self._emit(StateUpdated(session.snapshot()))
        return disposer

    def stop_navigation(self):
        """Stop the active session; does nothing when there is none"""
        self._teardown("manual")

    def next_step(self):
        """Manually advance to the next instruction"""
        session = self._session
        if session is None or not session.instructions:
            return
        session.current_step = min(session.current_step + 1, len(session.instructions) - 1)
        self._emit(StateUpdated(session.snapshot()))

    def _teardown(self, reason: str):
        session, disposer = self._session, self._disposer
        if session is None:
            return
        self._session = None
        self._disposer = None
        disposer.dispose()

        self.logger.log("Navigation stopped", {
            "session_id": session.session_id,
            "reason": reason,
            "elapsed": session.elapsed_seconds,
            "progress": round(session.progress, 1),
        })
        self._emit(NavigationStopped(session.session_id, reason))
        self._emit(StateUpdated(NavigationState()))

    def _auto_stop(self, session_id: str):
        if self._session is not None and self._session.session_id == session_id:
            self._teardown("arrived")

    def _on_tick(self, session_id: str):
        session = self._session
        if session is None or session.session_id != session_id:
            return
        session.elapsed_seconds += 1
        if session.elapsed_seconds % CONFIG["log_interval"] == 0:
            self.logger.log("STATE", session.snapshot().to_dict())
        self._emit(StateUpdated(session.snapshot()))

    # ------------------------------------------------------------------
    # Inbox - safe to call from any thread
    # ------------------------------------------------------------------

    def post_sample(self, session_id: str, sample: PositionSample):
        self._inbox.put(_SampleMessage(session_id, sample))
        self.scheduler.call_soon(self._drain)

    def post_error(self, session_id: str, error: PositionError):
        self._inbox.put(_ErrorMessage(session_id, error))
        self.scheduler.call_soon(self._drain)

    def _accepts(self, session_id: str) -> bool:
        session = self._session
        return (
            session is not None
            and session.session_id == session_id
            and not self._disposer.disposed
            and session.status in (NavigationStatus.INITIALIZING, NavigationStatus.TRACKING)
        )

    def _drain(self):
        while True:
            try:
                message = self._inbox.get_nowait()
            except queue.Empty:
                return
            if not self._accepts(message.session_id):
                continue
            if isinstance(message, _SampleMessage):
                self._handle_sample(message.sample)
            else:
                self._handle_error(message.error)

    # ------------------------------------------------------------------
    # Message handling
    # ------------------------------------------------------------------

    def _handle_sample(self, sample: PositionSample):
        session = self._session
        first_fix = session.status == NavigationStatus.INITIALIZING
        events = reduce_sample(session, sample, self.calculators)

        if first_fix:
            self.logger.log("GPS fix obtained", {
                "lat": sample.position.lat,
                "lon": sample.position.lon,
                "accuracy": sample.accuracy,
            })

        for event in events:
            if isinstance(event, Arrived):
                self.logger.log("Arrived", {
                    "session_id": session.session_id,
                    "distance": round(event.distance_to_destination, 1),
                })
                self._disposer.add_timer(self.scheduler.call_later(
                    self.arrival_stop_delay, self._auto_stop, session.session_id
                ))
            elif isinstance(event, OffRouteEntered):
                heading = f", heading {bearing_to_compass(session.heading)}" if session.heading is not None else ""
                self.logger.log(f"Off route{heading}", {
                    "distance_from_route": round(event.distance_from_route, 1),
                })
            elif isinstance(event, OffRouteCleared):
                self.logger.log("Back on route")

        self._record(session, sample)

        self._emit(StateUpdated(session.snapshot()))
        for event in events:
            self._emit(event)

    def _handle_error(self, error: PositionError):
        session = self._session
        session.last_error = error
        fatal = error.kind.is_fatal
        self.logger.log("GPS error", {"kind": error.kind.value, "message": error.message, "fatal": fatal})

        if fatal:
            session.status = NavigationStatus.ERROR
            self._disposer.dispose()

        self._emit(StateUpdated(session.snapshot()))
        self._emit(GpsError(session.session_id, error.kind, error.message, fatal))

    def _record(self, session: NavigationSession, sample: PositionSample):
        """Hand the accepted sample to every sink without waiting on the result"""
        if not self.sinks:
            return
        record = LocationRecord(
            session_id=session.session_id,
            lat=sample.position.lat,
            lon=sample.position.lon,
            timestamp=sample.timestamp if sample.timestamp is not None else time.time(),
        )
        for sink in self.sinks:
            try:
                sink.record_location(record)
            except Exception as e:
                self.logger.log("Location sink error", {"sink": type(sink).__name__, "error": str(e)})
