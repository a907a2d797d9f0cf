"""Geographic utility functions."""

import math
import time

import polyline

from .models import GeoPoint


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points in meters using Haversine formula"""
    R = 6371000  # Earth's radius in meters

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    # Rounding can push a just past 1 for antipodal points
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


def bearing_between(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate bearing from point 1 to point 2 in degrees (0-360, 0=North)"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)

    x = math.sin(delta_lambda) * math.cos(phi2)
    y = (math.cos(phi1) * math.sin(phi2) -
         math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda))

    bearing = math.degrees(math.atan2(x, y))
    return (bearing + 360) % 360


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points in meters"""
    return haversine_distance(a.lat, a.lon, b.lat, b.lon)


def bearing(origin: GeoPoint, target: GeoPoint) -> float:
    """Initial bearing from origin to target in degrees"""
    return bearing_between(origin.lat, origin.lon, target.lat, target.lon)


def bearing_to_compass(bearing: float) -> str:
    """Convert bearing to compass direction"""
    directions = ["north", "northeast", "east", "southeast",
                  "south", "southwest", "west", "northwest"]
    index = round(bearing / 45) % 8
    return directions[index]


def point_to_segment_distance(point: GeoPoint, seg_start: GeoPoint, seg_end: GeoPoint) -> float:
    """Distance in meters from a point to the closest point of a segment.

    Projects onto a local equirectangular plane centred on the point, which is
    accurate for the short segments of a walking route.
    """
    R = 6371000
    cos_lat = math.cos(math.radians(point.lat))

    def to_xy(p: GeoPoint) -> tuple[float, float]:
        x = math.radians(p.lon - point.lon) * cos_lat * R
        y = math.radians(p.lat - point.lat) * R
        return x, y

    ax, ay = to_xy(seg_start)
    bx, by = to_xy(seg_end)
    dx, dy = bx - ax, by - ay
    length_sq = dx * dx + dy * dy

    if length_sq == 0:
        return distance(point, seg_start)

    t = max(0.0, min(1.0, -(ax * dx + ay * dy) / length_sq))
    closest_lat = seg_start.lat + t * (seg_end.lat - seg_start.lat)
    closest_lon = seg_start.lon + t * (seg_end.lon - seg_start.lon)
    return haversine_distance(point.lat, point.lon, closest_lat, closest_lon)


def decode_path(encoded: str) -> tuple[GeoPoint, ...]:
    """Decode a Google encoded polyline into route points.

    Returns an empty path if the string is missing or malformed.
    """
    if not encoded:
        return ()
    try:
        coords = polyline.decode(encoded)
    except (IndexError, ValueError, TypeError) as e:
        print(f"Could not decode route path: {e}")
        return ()
    return tuple(GeoPoint(lat=lat, lon=lon) for lat, lon in coords)


def encode_path(points) -> str:
    """Encode route points as a Google polyline"""
    return polyline.encode([(p.lat, p.lon) for p in points])


def retry_with_backoff(func, max_time: float = 30.0, initial_delay: float = 1.0,
                       max_delay: float = 8.0, description: str = "operation"):
    """Retry a function with exponential backoff.

    Args:
        func: Function that returns a truthy value on success, falsy on failure
        max_time: Maximum total time to retry (seconds)
        initial_delay: Initial delay between retries (seconds)
        max_delay: Maximum delay between retries (seconds)
        description: Description for logging

    Returns:
        The result of func() on success, or None if all retries failed
    """
    start_time = time.time()
    delay = initial_delay
    attempt = 1

    while True:
        result = func()
        if result:
            return result

        elapsed = time.time() - start_time
        if elapsed >= max_time:
            print(f"Failed to complete {description} after {elapsed:.1f}s ({attempt} attempts)")
            return None

        remaining = max_time - elapsed
        sleep_time = min(delay, remaining, max_delay)
        if sleep_time > 0:
            print(f"Retrying {description} in {sleep_time:.1f}s (attempt {attempt})...")
            time.sleep(sleep_time)

        delay = min(delay * 2, max_delay)
        attempt += 1
