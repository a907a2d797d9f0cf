import pytest

from safewalk.geo import distance
from safewalk.models import GeoPoint
from safewalk.tracking import (
    ArrivalDetector,
    ProgressEstimator,
    RouteDeviationDetector,
    format_distance,
    format_duration,
    step_for_progress,
)

ROUTE = (GeoPoint(51.5, -0.1), GeoPoint(51.509, -0.1))


def test_off_route_threshold_is_exclusive():
    vertex = GeoPoint(51.5, -0.1)
    position = GeoPoint(51.5, -0.0993)
    gap = distance(position, vertex)

    assert not RouteDeviationDetector(threshold_m=gap).is_off_route(position, [vertex])
    assert RouteDeviationDetector(threshold_m=gap - 0.01).is_off_route(position, [vertex])


def test_default_threshold_is_fifty_meters():
    detector = RouteDeviationDetector()
    vertex = GeoPoint(0.0, 0.0)
    # 1e-5 degrees of latitude is ~1.11 m at the equator
    assert not detector.is_off_route(GeoPoint(49.9 / 111194.93, 0.0), [vertex])
    assert detector.is_off_route(GeoPoint(50.01 / 111194.93, 0.0), [vertex])


def test_empty_route_is_never_off_route():
    detector = RouteDeviationDetector()
    assert detector.distance_from_route(GeoPoint(0, 0), []) is None
    assert not detector.is_off_route(GeoPoint(0, 0), [])


def test_vertex_mode_overstates_distance_on_sparse_route():
    # 30 m west of the midpoint of a 1 km segment
    position = GeoPoint(51.5045, -0.1 - 30 / (111194.93 * 0.6225))

    vertex = RouteDeviationDetector(mode="vertex")
    segment = RouteDeviationDetector(mode="segment")

    assert vertex.distance_from_route(position, ROUTE) == pytest.approx(500, rel=0.01)
    assert vertex.is_off_route(position, ROUTE)
    assert segment.distance_from_route(position, ROUTE) == pytest.approx(30, rel=0.01)
    assert not segment.is_off_route(position, ROUTE)


def test_unknown_deviation_mode():
    with pytest.raises(ValueError):
        RouteDeviationDetector(mode="corridor")


def test_progress_percent_bounds():
    assert ProgressEstimator.progress_percent(1000, 600) == pytest.approx(40)
    assert ProgressEstimator.progress_percent(1000, 1000) == 0
    # Walking away from the destination never gives negative progress
    assert ProgressEstimator.progress_percent(1000, 1500) == 0
    assert ProgressEstimator.progress_percent(1000, 0) == 100
    assert ProgressEstimator.progress_percent(0, 50) == 100


def test_total_distance_is_straight_line():
    detour = (ROUTE[0], GeoPoint(51.5045, -0.09), ROUTE[1])
    assert ProgressEstimator.total_distance(detour) == pytest.approx(distance(*ROUTE))
    assert ProgressEstimator.total_distance(()) == 0


def test_eta_at_walking_speed():
    estimator = ProgressEstimator()
    assert estimator.eta_seconds(1000) == pytest.approx(720)
    assert estimator.eta_seconds(-5) == 0
    assert ProgressEstimator(walking_speed_kmh=3.6).eta_seconds(100) == pytest.approx(100)


def test_format_distance():
    assert format_distance(0) == "0 m"
    assert format_distance(12.5) == "13 m"
    assert format_distance(999.4) == "999 m"
    assert format_distance(1000) == "1.0 km"
    assert format_distance(2345) == "2.3 km"


def test_format_duration():
    assert format_duration(0) == "0 min"
    assert format_duration(61) == "2 min"
    assert format_duration(59 * 60) == "59 min"
    assert format_duration(3600) == "1h 0m"
    assert format_duration(5400) == "1h 30m"


def test_arrival_radius_is_exclusive():
    detector = ArrivalDetector()
    assert not detector.is_within(20)
    assert detector.is_within(19.99)


def test_arrival_check_is_edge_triggered():
    detector = ArrivalDetector(radius_m=20)
    assert detector.check(10, already_arrived=False)
    assert not detector.check(10, already_arrived=True)
    assert not detector.check(30, already_arrived=False)


def test_step_thresholds_are_exclusive():
    assert step_for_progress(20, 0, 5) == 0
    assert step_for_progress(20.1, 0, 5) == 1
    assert step_for_progress(60.5, 0, 5) == 3
    assert step_for_progress(100, 0, 5) == 4


def test_step_is_monotonic_and_capped():
    assert step_for_progress(10, 3, 5) == 3
    assert step_for_progress(100, 0, 3) == 2
    assert step_for_progress(0, 0, 0) == 0
    assert step_for_progress(50, 0, 5, thresholds=[(10, 2)]) == 2
