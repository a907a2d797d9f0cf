import json

from safewalk.debug_gui import DebugServer, WebSocketPositionSource
from safewalk.logger import Logger
from safewalk.models import GeoPoint, GeolocationOptions, NavigationStatus, RouteResult
from safewalk.navigator import NavigationStateMachine
from safewalk.scheduler import VirtualScheduler


def click(server, lat, lon):
    server.handle_client_message(json.dumps({"type": "location", "data": {"lat": lat, "lon": lon}}))


def test_map_click_becomes_position_sample():
    server = DebugServer()
    received = []
    server.location_listeners.append(received.append)

    click(server, 51.5, -0.1)

    assert len(received) == 1
    assert received[0].position == GeoPoint(51.5, -0.1)
    assert received[0].accuracy == 0


def test_malformed_messages_are_ignored():
    server = DebugServer()
    received = []
    server.location_listeners.append(received.append)

    server.handle_client_message("not json")
    server.handle_client_message(json.dumps({"type": "ping"}))
    server.handle_client_message(json.dumps({"type": "location", "data": {"lat": 51.5}}))

    assert received == []


def test_sending_without_clients_is_a_no_op():
    server = DebugServer()
    server.send_state({"status": "off"})
    server.send_frame(GeoPoint(51.5, -0.1), 5.0)
    server.send_log("hello")


def test_websocket_source_subscription():
    server = DebugServer()
    source = WebSocketPositionSource(server)
    samples = []

    handle = source.subscribe(samples.append, lambda error: None, GeolocationOptions())
    click(server, 51.5, -0.1)
    source.unsubscribe(handle)
    click(server, 51.6, -0.1)

    assert [s.position for s in samples] == [GeoPoint(51.5, -0.1)]
    assert source.last_sample is samples[0]
    assert server.location_listeners == []


def test_map_clicks_drive_navigation():
    server = DebugServer()
    scheduler = VirtualScheduler()
    machine = NavigationStateMachine(WebSocketPositionSource(server), scheduler,
                                     logger=Logger(echo=False))
    machine.start_navigation(RouteResult(path="_p~iF~ps|U_ulLnnqC"))

    click(server, 38.5, -120.2)
    scheduler.run_pending()

    assert machine.status == NavigationStatus.TRACKING
    assert machine.state.current_position == GeoPoint(38.5, -120.2)

    machine.stop_navigation()
    assert server.location_listeners == []
