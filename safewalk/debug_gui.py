"""Debug GUI server for SafeWalk.

Serves a Leaflet page that shows the route, the smoothed marker and the
navigation state, and turns map clicks into position samples.
"""

import asyncio
import http.server
import json
import threading
import time
import webbrowser
from functools import partial
from typing import Callable, Optional

import websockets

from .config import CONFIG
from .models import GeoPoint, GeolocationOptions, PositionSample


DEBUG_GUI_HTML = '''<!DOCTYPE html>
<html>
<head>
<title>SafeWalk Debug</title>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css">
<script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
<style>
html, body { margin: 0; height: 100%; font: 14px system-ui, sans-serif; }
body { display: grid; grid-template-rows: auto 1fr; }
.top { display: flex; gap: 16px; align-items: center; padding: 8px 16px; background: #0f172a; color: #f1f5f9; }
.top b { flex: 1; }
#connection-status { padding: 2px 10px; border-radius: 10px; background: #b91c1c; }
#connection-status.online { background: #15803d; }
.layout { display: grid; grid-template-columns: 1fr 340px; min-height: 0; }
#map { position: relative; }
#map .hint { position: absolute; z-index: 1000; left: 12px; bottom: 12px; padding: 6px 12px; background: #0f172acc; color: #fff; border-radius: 6px; pointer-events: none; }
aside { display: flex; flex-direction: column; min-height: 0; background: #f1f5f9; }
aside section { padding: 12px; border-bottom: 1px solid #cbd5e1; }
aside h2 { margin: 0 0 8px; font-size: 11px; color: #475569; text-transform: uppercase; }
dl { display: grid; grid-template-columns: auto 1fr; gap: 4px 12px; margin: 0; }
dt { color: #64748b; }
dd { margin: 0; font-weight: 600; }
dd.warn { color: #b91c1c; }
#audio-text { color: #92400e; }
#logs { flex: 1; overflow-y: auto; padding: 8px; background: #0f172a; color: #cbd5e1; font: 12px ui-monospace, monospace; }
#logs div { margin-bottom: 4px; }
#logs span { color: #7dd3fc; }
</style>
</head>
<body>
<div class="top"><b>SafeWalk Debug</b><span id="connection-status">Disconnected</span></div>
<div class="layout">
  <div id="map"><div class="hint">Click the map to send a GPS sample</div></div>
  <aside>
    <section>
      <h2>Navigation</h2>
      <dl>
        <dt>Status</dt><dd id="status">off</dd>
        <dt>Progress</dt><dd id="progress">0%</dd>
        <dt>Distance left</dt><dd id="distance">-</dd>
        <dt>Time left</dt><dd id="time">-</dd>
        <dt>Elapsed</dt><dd id="elapsed">00:00</dd>
        <dt>Route</dt><dd id="off-route">On route</dd>
        <dt>Instruction</dt><dd id="instruction">-</dd>
      </dl>
    </section>
    <section><h2>Announcement</h2><div id="audio-text">-</div></section>
    <div id="logs"></div>
  </aside>
</div>
<script>
var map = L.map('map').setView([51.5074, -0.1278], 15);
L.tileLayer('https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png', {
    attribution: '&copy; OpenStreetMap contributors'
}).addTo(map);

var ws = null, routeLine = null, destinationMarker = null;
var marker = null, accuracyCircle = null, rawMarker = null;

function setText(id, text) { document.getElementById(id).textContent = text; }

function connect() {
    var badge = document.getElementById('connection-status');
    ws = new WebSocket('ws://localhost:{{WS_PORT}}');
    ws.onopen = function() {
        badge.textContent = 'Connected';
        badge.classList.add('online');
    };
    ws.onclose = function() {
        badge.textContent = 'Disconnected';
        badge.classList.remove('online');
        setTimeout(connect, 2000);
    };
    ws.onmessage = function(event) {
        var msg = JSON.parse(event.data);
        if (msg.type === 'route') displayRoute(msg.data.path);
        else if (msg.type === 'state') updateState(msg.data);
        else if (msg.type === 'frame') moveMarker(msg.data);
        else if (msg.type === 'log') addLog(msg.data.message, msg.data.data);
        else if (msg.type === 'audio') setText('audio-text', msg.data.text);
    };
}

function displayRoute(path) {
    [routeLine, destinationMarker].forEach(function(layer) { if (layer) map.removeLayer(layer); });
    if (!path || !path.length) return;
    routeLine = L.polyline(path, {color: '#2563eb', weight: 5, opacity: 0.8}).addTo(map);
    destinationMarker = L.circleMarker(path[path.length - 1],
        {radius: 8, color: '#111', fillColor: '#dc2626', fillOpacity: 1}).addTo(map);
    map.fitBounds(routeLine.getBounds(), {padding: [40, 40]});
}

function moveMarker(data) {
    var pos = [data.lat, data.lon];
    if (!marker) {
        marker = L.circleMarker(pos, {radius: 8, color: '#fff', weight: 3, fillColor: '#2563eb', fillOpacity: 1}).addTo(map);
        accuracyCircle = L.circle(pos, {radius: 0, color: '#2563eb', weight: 1, fillOpacity: 0.1}).addTo(map);
    }
    marker.setLatLng(pos);
    accuracyCircle.setLatLng(pos).setRadius(data.accuracy || 0);
}

function updateState(s) {
    setText('status', s.status);
    setText('progress', s.progress.toFixed(0) + '%');
    setText('distance', s.distance_remaining || '-');
    setText('time', s.time_remaining || '-');
    setText('elapsed', s.elapsed);
    setText('instruction', s.instruction || '-');
    setText('off-route', s.off_route ? 'OFF ROUTE' : (s.arrived ? 'Arrived' : 'On route'));
    document.getElementById('off-route').classList.toggle('warn', s.off_route);
    if (s.location) {
        var raw = [s.location.lat, s.location.lon];
        if (!rawMarker) rawMarker = L.circleMarker(raw, {radius: 3, color: '#ea580c'}).addTo(map);
        rawMarker.setLatLng(raw);
    }
    if (s.status === 'off' && marker) {
        map.removeLayer(marker);
        map.removeLayer(accuracyCircle);
        marker = accuracyCircle = null;
    }
}

function addLog(message, data) {
    var logs = document.getElementById('logs');
    var line = document.createElement('div');
    line.textContent = new Date().toLocaleTimeString() + ' ' + message + ' ';
    if (data) {
        var extra = document.createElement('span');
        extra.textContent = JSON.stringify(data);
        line.appendChild(extra);
    }
    logs.appendChild(line);
    while (logs.childElementCount > 100) logs.firstElementChild.remove();
    logs.scrollTop = logs.scrollHeight;
}

map.on('click', function(e) {
    if (ws && ws.readyState === WebSocket.OPEN) {
        ws.send(JSON.stringify({type: 'location', data: {lat: e.latlng.lat, lon: e.latlng.lng}}));
    }
});

connect();
</script>
</body>
</html>'''


class DebugServer:
    """Serves the debug page and streams navigation updates to it"""

    def __init__(self, http_port: Optional[int] = None, ws_port: Optional[int] = None):
        self.http_port = http_port or CONFIG["debug_http_port"]
        self.ws_port = ws_port or CONFIG["debug_ws_port"]
        self.location_listeners: list[Callable[[PositionSample], None]] = []
        self.clients: set = set()
        self.ws_loop: Optional[asyncio.AbstractEventLoop] = None
        self._httpd: Optional[http.server.ThreadingHTTPServer] = None
        self._ws_stop: Optional[asyncio.Future] = None

    def start(self, open_browser: bool = True):
        """Start the page and websocket servers on daemon threads"""
        handler = partial(_DebugHTTPHandler, self.ws_port)
        self._httpd = http.server.ThreadingHTTPServer(("", self.http_port), handler)
        threading.Thread(target=self._httpd.serve_forever, daemon=True).start()

        ready = threading.Event()
        threading.Thread(target=self._run_ws_server, args=(ready,), daemon=True).start()
        ready.wait(2)

        url = f"http://localhost:{self.http_port}"
        print(f"Debug GUI available at: {url}")
        if open_browser:
            webbrowser.open(url)

    def _run_ws_server(self, ready: threading.Event):
        self.ws_loop = asyncio.new_event_loop()

        async def handler(websocket):
            self.clients.add(websocket)
            try:
                async for message in websocket:
                    self.handle_client_message(message)
            finally:
                self.clients.discard(websocket)

        async def serve():
            self._ws_stop = self.ws_loop.create_future()
            try:
                async with websockets.serve(handler, "localhost", self.ws_port):
                    ready.set()
                    await self._ws_stop
            except OSError as e:
                print(f"WebSocket server error: {e}")
                ready.set()

        self.ws_loop.run_until_complete(serve())
        self.ws_loop.close()

    def handle_client_message(self, message: str):
        """Turn a map click from the browser into a position sample"""
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            return
        if data.get("type") != "location":
            return
        click = data.get("data", {})
        if "lat" not in click or "lon" not in click:
            return
        sample = PositionSample(
            position=GeoPoint(lat=click["lat"], lon=click["lon"]),
            accuracy=0,
            timestamp=time.time(),
        )
        for listener in list(self.location_listeners):
            listener(sample)

    def _broadcast(self, msg_type: str, data: dict):
        loop = self.ws_loop
        if not self.clients or loop is None or loop.is_closed():
            return
        message = json.dumps({"type": msg_type, "data": data}, default=str)

        async def send():
            for client in list(self.clients):
                try:
                    await client.send(message)
                except websockets.ConnectionClosed:
                    self.clients.discard(client)

        asyncio.run_coroutine_threadsafe(send(), loop)

    def send_route(self, path: list[list[float]]):
        self._broadcast("route", {"path": path})

    def send_state(self, state: dict):
        self._broadcast("state", state)

    def send_frame(self, position: GeoPoint, accuracy: Optional[float] = None):
        """Move the smoothed marker"""
        self._broadcast("frame", {"lat": position.lat, "lon": position.lon, "accuracy": accuracy})

    def send_log(self, message: str, data: Optional[dict] = None):
        self._broadcast("log", {"message": message, "data": data})

    def send_audio(self, text: str):
        self._broadcast("audio", {"text": text})

    def stop(self):
        if self._httpd:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
        loop, stop = self.ws_loop, self._ws_stop
        if loop and stop and not loop.is_closed():
            loop.call_soon_threadsafe(lambda: stop.done() or stop.set_result(None))


class _DebugHTTPHandler(http.server.BaseHTTPRequestHandler):
    def __init__(self, ws_port: int, *args, **kwargs):
        self.ws_port = ws_port
        super().__init__(*args, **kwargs)

    def do_GET(self):
        if self.path not in ("/", "/index.html"):
            self.send_error(404)
            return
        body = DEBUG_GUI_HTML.replace("{{WS_PORT}}", str(self.ws_port)).encode()
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


class WebSocketPositionSource:
    """Position source fed by map clicks in the debug GUI"""

    def __init__(self, debug_server: DebugServer):
        self.server = debug_server
        self.last_sample: Optional[PositionSample] = None
        self._deliveries: dict[int, Callable] = {}
        self._next_handle = 1

    def subscribe(self, on_sample: Callable, on_error: Callable,
                  options: GeolocationOptions) -> int:
        def deliver(sample: PositionSample):
            self.last_sample = sample
            on_sample(sample)

        handle = self._next_handle
        self._next_handle += 1
        self._deliveries[handle] = deliver
        self.server.location_listeners.append(deliver)
        return handle

    def unsubscribe(self, handle: int):
        deliver = self._deliveries.pop(handle, None)
        if deliver in self.server.location_listeners:
            self.server.location_listeners.remove(deliver)

    def get_status(self) -> str:
        return "Debug GUI (click map to set location)"
