"""Main SafeWalk application."""

import asyncio
import time
from typing import Callable, Optional

from .audio import Audio
from .animator import PositionAnimator
from .config import CONFIG
from .debug_gui import DebugServer
from .directions import DirectionsClient, DirectionsError, MapsLoader
from .events import GpsError, NavigationStarted, NavigationStopped, StateUpdated
from .geo import retry_with_backoff
from .gps import PlaybackPositionSource, PositionRecorder, TermuxPositionSource
from .history import TrackHistoryDB
from .logger import Logger
from .models import GeoPoint, NavigationState, NavigationStatus, PositionSample, RouteResult
from .navigator import NavigationStateMachine
from .remote import RemoteLocationSink
from .scheduler import LoopScheduler, VirtualScheduler
from .trace_map import create_session_map


class SafeWalk:
    """Main application: wires a position source to navigation and display"""

    def __init__(self, log_path: Optional[str] = None,
                 db_path: Optional[str] = None,
                 html_output: Optional[str] = None,
                 debug_gui: bool = False,
                 remote_url: Optional[str] = None,
                 remote_key: Optional[str] = None,
                 announce: bool = True):
        self.html_output = html_output
        self.announce = announce

        # Debug GUI server
        self.debug_server: Optional[DebugServer] = None
        if debug_gui:
            self.debug_server = DebugServer()
            self.debug_server.start()
            Audio.set_callback(self.debug_server.send_audio)

        log_callback = self.debug_server.send_log if self.debug_server else None
        self.logger = Logger(log_path, callback=log_callback)

        self.history = TrackHistoryDB(db_path or CONFIG["history_db"])
        self.remote: Optional[RemoteLocationSink] = None
        if remote_url:
            self.remote = RemoteLocationSink(remote_url, api_key=remote_key)

        self.maps_loader = MapsLoader()
        self.directions = DirectionsClient(self.maps_loader)

        # Builds the position source once the scheduler exists
        self.source_factory: Callable = lambda scheduler: TermuxPositionSource()
        self.gps_source = None
        self.machine: Optional[NavigationStateMachine] = None
        self.animator: Optional[PositionAnimator] = None

        self.samples: list[PositionSample] = []
        self.frames: list[GeoPoint] = []
        self.last_state: Optional[NavigationState] = None
        self.finished = False
        self._playback_done_at: Optional[float] = None
        self._last_position: Optional[GeoPoint] = None
        self._started_at = 0.0

    def set_gps_source(self, factory: Callable):
        """Set a factory taking the scheduler and returning the position source"""
        self.source_factory = factory

    def find_routes(self, origin: str, destination: str) -> list[RouteResult]:
        """Search walking alternatives, safest first"""
        error = self.maps_loader.load().exception()
        if error:
            self.logger.log("Maps service unavailable", {"error": str(error)})
            return []

        def try_directions():
            try:
                routes = self.directions.get_routes(origin, destination)
            except DirectionsError as e:
                if not e.retryable:
                    raise
                self.logger.log("Directions search failed", {"error": str(e)})
                return None
            self.logger.log("Routes found", {"count": len(routes)})
            return routes

        try:
            routes = retry_with_backoff(
                try_directions,
                max_time=30.0,
                initial_delay=2.0,
                max_delay=8.0,
                description="Directions search"
            )
        except DirectionsError as e:
            self.logger.log("No routes found", {"error": str(e)})
            return []
        return routes or []

    def build(self, scheduler):
        """Create source, state machine and animator on a scheduler"""
        self.gps_source = self.source_factory(scheduler)
        sinks = [self.history]
        if self.remote:
            sinks.append(self.remote)
        self.machine = NavigationStateMachine(self.gps_source, scheduler, sinks=sinks,
                                              logger=self.logger)
        self.animator = PositionAnimator(scheduler)
        self.animator.add_listener(self.frames.append)
        if self.debug_server:
            self.animator.add_listener(self._send_frame)
        self.machine.subscribe(self.on_event)

    def _send_frame(self, position: GeoPoint):
        accuracy = self.last_state.accuracy if self.last_state else None
        self.debug_server.send_frame(position, accuracy)

    def on_event(self, event):
        """Rendering side of navigation: display, history and announcements"""
        if isinstance(event, StateUpdated):
            self._on_state(event.state)
        elif isinstance(event, NavigationStarted):
            self.history.start_session(event.session_id, self.machine.state.selected_route)
            if self.debug_server:
                self.debug_server.send_route([[p.lat, p.lon] for p in self.machine.state.route])
        elif isinstance(event, NavigationStopped):
            reason = event.reason
            elapsed = 0
            if self.last_state:
                elapsed = self.last_state.elapsed_seconds
                if self.last_state.status == NavigationStatus.ERROR and self.last_state.last_error:
                    reason = f"error:{self.last_state.last_error.kind.value}"
            self.history.end_session(event.session_id, reason, elapsed)
            self.animator.reset()
            self._last_position = None
            if event.reason != "restart":
                self.finished = True
        elif isinstance(event, GpsError) and event.fatal:
            self.finished = True

        if self.announce:
            Audio.announce(event)

    def _on_state(self, state: NavigationState):
        if self.debug_server:
            self.debug_server.send_state(state.to_dict())
        if state.status == NavigationStatus.OFF:
            return
        self.last_state = state

        # Tick updates reuse the last position object, new samples bring a new one
        position = state.current_position
        if position is None or position is self._last_position:
            return
        self._last_position = position
        self.samples.append(PositionSample(
            position=position,
            accuracy=state.accuracy,
            heading=state.heading,
            speed=state.speed,
        ))
        self.animator.push(position)
        print(f"{state.progress:5.1f}% | {state.distance_remaining_text} | "
              f"{state.time_remaining_text} | {state.current_instruction}")

    def _playback_finished(self) -> bool:
        source = self.gps_source
        if isinstance(source, PositionRecorder):
            source = source.source
        return isinstance(source, PlaybackPositionSource) and source.is_finished()

    def _should_stop(self, scheduler) -> bool:
        """True once navigation ended or a finished playback has had time to settle"""
        if self.finished:
            return True
        if self._playback_done_at is None:
            if self._playback_finished():
                self._playback_done_at = scheduler.time()
                self.logger.log("Playback finished")
            return False
        grace = CONFIG["arrival_stop_delay"] + CONFIG["animation_duration"]
        return scheduler.time() - self._playback_done_at >= grace

    async def _run_live(self, route: RouteResult):
        scheduler = LoopScheduler()
        self.build(scheduler)
        self.machine.start_navigation(route)
        while not self._should_stop(scheduler):
            await asyncio.sleep(0.1)
        self.machine.stop_navigation()

    def _run_virtual(self, route: RouteResult):
        """Replay as fast as possible on a virtual clock"""
        scheduler = VirtualScheduler()
        self.build(scheduler)
        self.machine.start_navigation(route)
        while not self._should_stop(scheduler):
            scheduler.advance(0.1)
        self.machine.stop_navigation()

    def run(self, route: RouteResult, instant: bool = False):
        """Navigate a route until arrival, stop or Ctrl+C"""
        print(f"\n=== SafeWalk ===")
        print(f"Route: {route.name or route.route_id} via {route.via}")
        print(f"Destination: {route.destination_text or 'unknown'} ({route.distance_text}, {route.duration_text})")
        if instant:
            print("Mode: INSTANT replay")
        else:
            print("Press Ctrl+C to stop")
        print()

        self._started_at = time.time()
        try:
            if instant:
                self._run_virtual(route)
            else:
                asyncio.run(self._run_live(route))
        except KeyboardInterrupt:
            print("\nNavigation interrupted")
            self.logger.log("Navigation interrupted by user")
            if self.machine:
                self.machine.stop_navigation()
        finally:
            self.shutdown()

    def shutdown(self):
        """Save recordings and maps and release resources"""
        if isinstance(self.gps_source, PositionRecorder):
            self.gps_source.save()

        if self.html_output and self.machine:
            route = self.last_state.route if self.last_state else ()
            try:
                m = create_session_map(route, self.samples, self.frames,
                                       title=self.last_state.selected_route.destination_text
                                       if self.last_state and self.last_state.selected_route else None)
                m.save(self.html_output)
                print(f"\nSession map saved to: {self.html_output}")
            except ValueError as e:
                print(f"No session map written: {e}")

        summary = {
            "samples": len(self.samples),
            "arrived": self.last_state.has_arrived if self.last_state else False,
            "progress": round(self.last_state.progress, 1) if self.last_state else 0,
            "duration": time.time() - self._started_at if self._started_at else 0,
        }
        self.logger.log("Navigation summary", summary)
        print(f"\nNavigation summary:")
        print(f"  Samples: {summary['samples']}")
        print(f"  Progress: {summary['progress']:.0f}%")
        print(f"  Arrived: {'yes' if summary['arrived'] else 'no'}")

        if self.announce:
            Audio.wait()
        if self.remote:
            self.remote.close()
        if self.debug_server:
            self.debug_server.stop()
        self.history.close()
        self.logger.close()
