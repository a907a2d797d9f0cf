import pytest

from safewalk.geo import encode_path
from safewalk.logger import Logger
from safewalk.models import GeoPoint, PositionSample, RouteResult
from safewalk.navigator import NavigationStateMachine
from safewalk.scheduler import VirtualScheduler

START = GeoPoint(51.5, -0.1)
DESTINATION = GeoPoint(51.509, -0.1)  # ~1 km due north of START


def point_along(fraction: float) -> GeoPoint:
    """Point on the meridian between START and DESTINATION"""
    return GeoPoint(START.lat + (DESTINATION.lat - START.lat) * fraction, START.lon)


def sample_at(position: GeoPoint, **fields) -> PositionSample:
    return PositionSample(position=position, **fields)


class FakePositionSource:
    """Position source driven by the test; remembers active subscriptions"""

    def __init__(self):
        self.subscriptions = {}
        self.options = []
        self._next_id = 1

    def subscribe(self, on_sample, on_error, options):
        handle = self._next_id
        self._next_id += 1
        self.subscriptions[handle] = (on_sample, on_error)
        self.options.append(options)
        return handle

    def unsubscribe(self, handle):
        self.subscriptions.pop(handle, None)

    @property
    def active(self) -> int:
        return len(self.subscriptions)

    def emit(self, sample: PositionSample):
        for on_sample, _ in list(self.subscriptions.values()):
            on_sample(sample)

    def fail(self, error):
        for _, on_error in list(self.subscriptions.values()):
            on_error(error)


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
def source():
    return FakePositionSource()


@pytest.fixture
def route():
    # A vertex every ~33 m so positions on the meridian stay within the threshold
    points = [GeoPoint(round(START.lat + 0.0003 * i, 5), START.lon) for i in range(31)]
    return RouteResult(
        path=encode_path(points),
        destination_text="Central Library",
        distance_text="1.0 km",
        duration_text="12 mins",
        via="High Street",
        route_id="route-0",
        name="Recommended Safe Route",
        safety_score=85,
    )


@pytest.fixture
def machine(source, scheduler):
    return NavigationStateMachine(source, scheduler, logger=Logger(echo=False))


@pytest.fixture
def events(machine):
    received = []
    machine.subscribe(received.append)
    return received


def of_type(events, event_type):
    return [e for e in events if isinstance(e, event_type)]
