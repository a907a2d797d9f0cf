"""Data classes for SafeWalk."""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "GeoPoint":
        return cls(lat=d["lat"], lon=d["lon"])


@dataclass(frozen=True)
class PositionSample:
    """One raw position reading with optional sensor fields"""
    position: GeoPoint
    accuracy: Optional[float] = None  # meters
    heading: Optional[float] = None  # degrees
    speed: Optional[float] = None  # m/s
    timestamp: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "lat": self.position.lat,
            "lon": self.position.lon,
            "accuracy": self.accuracy,
            "heading": self.heading,
            "speed": self.speed,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PositionSample":
        return cls(
            position=GeoPoint(lat=d["lat"], lon=d["lon"]),
            accuracy=d.get("accuracy"),
            heading=d.get("heading"),
            speed=d.get("speed"),
            timestamp=d.get("timestamp"),
        )


class GpsErrorKind(Enum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"

    @property
    def is_fatal(self) -> bool:
        return self in (GpsErrorKind.PERMISSION_DENIED, GpsErrorKind.UNSUPPORTED)


ERROR_MESSAGES = {
    GpsErrorKind.PERMISSION_DENIED: "Location permission denied. Please enable GPS.",
    GpsErrorKind.POSITION_UNAVAILABLE: "GPS signal unavailable. Please check your location settings.",
    GpsErrorKind.TIMEOUT: "GPS signal timeout. Retrying...",
    GpsErrorKind.UNSUPPORTED: "Geolocation is not supported on this device.",
}


@dataclass(frozen=True)
class PositionError:
    kind: GpsErrorKind
    message: str = ""

    @classmethod
    def of(cls, kind: GpsErrorKind, detail: Optional[str] = None) -> "PositionError":
        message = ERROR_MESSAGES[kind]
        if detail:
            message = f"{message} ({detail})"
        return cls(kind=kind, message=message)


@dataclass(frozen=True)
class GeolocationOptions:
    high_accuracy: bool = True
    max_cache_age_ms: int = 0
    timeout_ms: int = 10000

    @classmethod
    def from_dict(cls, d: dict) -> "GeolocationOptions":
        return cls(**d)


@dataclass
class RouteResult:
    """A route alternative as produced by the directions search"""
    path: str  # encoded polyline
    destination_text: str = ""
    distance_text: str = ""
    duration_text: str = ""
    via: str = ""
    route_id: str = "route-0"
    name: str = ""
    safety_score: int = 0
    factors: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "RouteResult":
        known = {k: v for k, v in d.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass(frozen=True)
class LocationRecord:
    """Append-only location update handed to persistence sinks"""
    session_id: str
    lat: float
    lon: float
    timestamp: float

    def to_dict(self) -> dict:
        return asdict(self)


class NavigationStatus(Enum):
    OFF = "off"
    INITIALIZING = "initializing"
    TRACKING = "tracking"
    ERROR = "error"


@dataclass(frozen=True)
class NavigationState:
    """Read-only snapshot of a navigation session"""
    status: NavigationStatus = NavigationStatus.OFF
    session_id: Optional[str] = None
    route: tuple = ()
    destination: Optional[GeoPoint] = None
    selected_route: Optional[RouteResult] = None
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
    instructions: tuple = ()
    elapsed_seconds: int = 0
    last_error: Optional[PositionError] = None

    @property
    def is_navigating(self) -> bool:
        return self.status in (NavigationStatus.INITIALIZING, NavigationStatus.TRACKING)

    @property
    def current_instruction(self) -> Optional[str]:
        if 0 <= self.current_step < len(self.instructions):
            return self.instructions[self.current_step]
        return None

    @property
    def elapsed_text(self) -> str:
        mins, secs = divmod(self.elapsed_seconds, 60)
        return f"{mins:02d}:{secs:02d}"

    def to_dict(self) -> dict:
        """Compact dict for logs and the debug GUI"""
        return {
            "status": self.status.value,
            "session_id": self.session_id,
            "location": self.current_position.to_dict() if self.current_position else None,
            "accuracy": self.accuracy,
            "heading": self.heading,
            "speed": self.speed,
            "progress": round(self.progress, 1),
            "distance_remaining": self.distance_remaining_text,
            "time_remaining": self.time_remaining_text,
            "off_route": self.is_off_route,
            "arrived": self.has_arrived,
            "step": self.current_step,
            "instruction": self.current_instruction,
            "elapsed": self.elapsed_text,
        }
