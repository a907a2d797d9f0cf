"""SafeWalk - Pedestrian safety navigation."""

from .config import CONFIG
from .models import (
    GeoPoint,
    PositionSample,
    GpsErrorKind,
    PositionError,
    GeolocationOptions,
    RouteResult,
    LocationRecord,
    NavigationStatus,
    NavigationState,
)
from .events import (
    StateUpdated,
    NavigationStarted,
    OffRouteEntered,
    OffRouteCleared,
    Arrived,
    NavigationStopped,
    GpsError,
)
from .logger import Logger
from .geo import (
    haversine_distance,
    bearing_between,
    distance,
    bearing,
    bearing_to_compass,
    point_to_segment_distance,
    decode_path,
    encode_path,
    retry_with_backoff,
)
from .tracking import (
    RouteDeviationDetector,
    ProgressEstimator,
    ArrivalDetector,
    format_distance,
    format_duration,
    step_for_progress,
)
from .scheduler import LoopScheduler, VirtualScheduler, SessionDisposer
from .navigator import NavigationStateMachine
from .animator import PositionAnimator
from .gps import TermuxPositionSource, PositionRecorder, PlaybackPositionSource
from .debug_gui import DebugServer, WebSocketPositionSource
from .history import TrackHistoryDB
from .remote import RemoteLocationSink
from .directions import DirectionsClient, DirectionsError, MapsLoader
from .audio import Audio
from .app import SafeWalk
from .__main__ import main

__all__ = [
    "CONFIG",
    "GeoPoint",
    "PositionSample",
    "GpsErrorKind",
    "PositionError",
    "GeolocationOptions",
    "RouteResult",
    "LocationRecord",
    "NavigationStatus",
    "NavigationState",
    "StateUpdated",
    "NavigationStarted",
    "OffRouteEntered",
    "OffRouteCleared",
    "Arrived",
    "NavigationStopped",
    "GpsError",
    "Logger",
    "haversine_distance",
    "bearing_between",
    "distance",
    "bearing",
    "bearing_to_compass",
    "point_to_segment_distance",
    "decode_path",
    "encode_path",
    "retry_with_backoff",
    "RouteDeviationDetector",
    "ProgressEstimator",
    "ArrivalDetector",
    "format_distance",
    "format_duration",
    "step_for_progress",
    "LoopScheduler",
    "VirtualScheduler",
    "SessionDisposer",
    "NavigationStateMachine",
    "PositionAnimator",
    "TermuxPositionSource",
    "PositionRecorder",
    "PlaybackPositionSource",
    "DebugServer",
    "WebSocketPositionSource",
    "TrackHistoryDB",
    "RemoteLocationSink",
    "DirectionsClient",
    "DirectionsError",
    "MapsLoader",
    "Audio",
    "SafeWalk",
    "main",
]
