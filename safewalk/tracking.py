"""Per-sample calculators: route deviation, progress/ETA and arrival."""

import math
from typing import Optional, Sequence

from .config import CONFIG
from .geo import distance, point_to_segment_distance
from .models import GeoPoint


class RouteDeviationDetector:
    """Flags positions that are too far from the planned path.

    In "vertex" mode the distance to the route is the distance to its nearest
    vertex, so long straight segments with sparse vertices understate how far
    off the route a position really is. "segment" mode projects onto each
    segment instead.
    """

    def __init__(self, threshold_m: Optional[float] = None, mode: Optional[str] = None):
        self.threshold_m = threshold_m if threshold_m is not None else CONFIG["route_deviation_threshold"]
        self.mode = mode or CONFIG["route_deviation_mode"]
        if self.mode not in ("vertex", "segment"):
            raise ValueError(f"Unknown route deviation mode: {self.mode}")

    def distance_from_route(self, position: GeoPoint, route: Sequence[GeoPoint]) -> Optional[float]:
        """Minimum distance in meters from position to the route, None for an empty route"""
        if not route:
            return None
        if self.mode == "segment" and len(route) > 1:
            return min(
                point_to_segment_distance(position, route[i], route[i + 1])
                for i in range(len(route) - 1)
            )
        return min(distance(position, point) for point in route)

    def is_off_route(self, position: GeoPoint, route: Sequence[GeoPoint]) -> bool:
        min_distance = self.distance_from_route(position, route)
        if min_distance is None:
            return False
        return min_distance > self.threshold_m


class ProgressEstimator:
    """Remaining distance, ETA and percentage completion"""

    def __init__(self, walking_speed_kmh: Optional[float] = None):
        speed_kmh = walking_speed_kmh or CONFIG["walking_speed_kmh"]
        self.walking_speed = speed_kmh * 1000 / 3600  # m/s

    @staticmethod
    def total_distance(route: Sequence[GeoPoint]) -> float:
        """Straight-line distance from the route start to its destination"""
        if not route:
            return 0.0
        return distance(route[0], route[-1])

    @staticmethod
    def distance_remaining(position: GeoPoint, destination: GeoPoint) -> float:
        return distance(position, destination)

    def eta_seconds(self, distance_remaining: float) -> float:
        return max(0.0, distance_remaining) / self.walking_speed

    @staticmethod
    def progress_percent(total_distance: float, distance_remaining: float) -> float:
        if total_distance <= 0 or distance_remaining <= 0:
            return 100.0
        progress = (total_distance - distance_remaining) / total_distance * 100
        return min(100.0, max(0.0, progress))


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{math.floor(meters + 0.5)} m"
    return f"{meters / 1000:.1f} km"


def format_duration(seconds: float) -> str:
    minutes = math.ceil(seconds / 60)
    if minutes < 60:
        return f"{minutes} min"
    hours, mins = divmod(minutes, 60)
    return f"{hours}h {mins}m"


class ArrivalDetector:
    """Edge-triggered arrival at the destination"""

    def __init__(self, radius_m: Optional[float] = None):
        self.radius_m = radius_m if radius_m is not None else CONFIG["arrival_radius"]

    def is_within(self, distance_to_destination: float) -> bool:
        return distance_to_destination < self.radius_m

    def check(self, distance_to_destination: float, already_arrived: bool) -> bool:
        """True only for the sample on which arrival first happens"""
        return not already_arrived and self.is_within(distance_to_destination)


def step_for_progress(progress: float, current_step: int, instruction_count: int,
                      thresholds: Optional[Sequence[tuple]] = None) -> int:
    """Instruction step for a progress value; never lower than current_step"""
    thresholds = thresholds if thresholds is not None else CONFIG["progress_step_thresholds"]
    qualified = 0
    for threshold, step in thresholds:
        if progress > threshold:
            qualified = max(qualified, step)
    step = max(current_step, qualified)
    if instruction_count > 0:
        step = min(step, instruction_count - 1)
    return step
