import requests

from safewalk.models import LocationRecord
from safewalk.remote import RemoteLocationSink


class FakeResponse:
    def __init__(self, status_code=201):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, responses=None):
        self.headers = {}
        self.posts = []
        self.responses = list(responses or [])

    def post(self, url, json=None, timeout=None):
        self.posts.append((url, json, timeout))
        if self.responses:
            response = self.responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return FakeResponse()


def test_records_are_posted_in_order():
    session = FakeSession()
    sink = RemoteLocationSink("https://example.test/locations", api_key="secret",
                              session=session, timeout=3)

    sink.record_location(LocationRecord("s1", 51.5, -0.1, 1700000000.0))
    sink.record_location(LocationRecord("s1", 51.501, -0.1, 1700000001.0))
    sink.close()

    assert sink.sent == 2
    assert sink.failed == 0
    assert session.headers["apikey"] == "secret"
    assert session.headers["Authorization"] == "Bearer secret"

    url, payload, timeout = session.posts[0]
    assert url == "https://example.test/locations"
    assert timeout == 3
    assert payload == {
        "session_id": "s1",
        "latitude": 51.5,
        "longitude": -0.1,
        "recorded_at": 1700000000.0,
    }
    assert session.posts[1][1]["latitude"] == 51.501


def test_failed_uploads_are_counted_not_raised():
    session = FakeSession([
        requests.ConnectionError("unreachable"),
        FakeResponse(500),
        FakeResponse(201),
    ])
    sink = RemoteLocationSink("https://example.test/locations", session=session)

    for i in range(3):
        sink.record_location(LocationRecord("s1", 51.5, -0.1, 1700000000.0 + i))
    sink.close()

    assert sink.failed == 2
    assert sink.sent == 1
    assert "apikey" not in session.headers
