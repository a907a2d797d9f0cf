"""Notifications emitted by the navigation state machine."""

from dataclasses import dataclass
from typing import Optional

from .models import GeoPoint, GpsErrorKind, NavigationState


@dataclass(frozen=True)
class StateUpdated:
    state: NavigationState


@dataclass(frozen=True)
class NavigationStarted:
    session_id: str
    destination: Optional[GeoPoint]


@dataclass(frozen=True)
class OffRouteEntered:
    session_id: str
    position: GeoPoint
    distance_from_route: Optional[float]


@dataclass(frozen=True)
class OffRouteCleared:
    session_id: str
    position: GeoPoint


@dataclass(frozen=True)
class Arrived:
    session_id: str
    position: GeoPoint
    distance_to_destination: float


@dataclass(frozen=True)
class NavigationStopped:
    session_id: str
    reason: str  # "manual", "arrived" or "restart"


@dataclass(frozen=True)
class GpsError:
    session_id: str
    kind: GpsErrorKind
    message: str
    fatal: bool
