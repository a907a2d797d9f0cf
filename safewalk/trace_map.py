"""Map visualization of a navigation session."""

from typing import Optional, Sequence

import folium
from folium import plugins

from .models import GeoPoint, PositionSample


def create_session_map(route: Sequence[GeoPoint], samples: Sequence[PositionSample],
                       frames: Sequence[GeoPoint] = (),
                       title: Optional[str] = None) -> folium.Map:
    """Create a map of the planned route, raw GPS samples and the smoothed marker trail"""
    points = list(route) + [s.position for s in samples] + list(frames)
    if not points:
        raise ValueError("Nothing to draw: no route and no samples")

    center_lat = sum(p.lat for p in points) / len(points)
    center_lon = sum(p.lon for p in points) / len(points)

    m = folium.Map(location=[center_lat, center_lon], zoom_start=16, tiles="CartoDB positron")
    folium.TileLayer("OpenStreetMap", name="OpenStreetMap").add_to(m)
    folium.TileLayer("CartoDB dark_matter", name="Dark").add_to(m)

    if route:
        route_layer = folium.FeatureGroup(name="Planned route", show=True)
        folium.PolyLine(
            [[p.lat, p.lon] for p in route],
            weight=5,
            color="#3b82f6",
            opacity=0.7,
            popup=title or "Planned route"
        ).add_to(route_layer)
        folium.Marker(
            [route[0].lat, route[0].lon],
            popup="Start",
            icon=folium.Icon(color="green", icon="play")
        ).add_to(route_layer)
        folium.Marker(
            [route[-1].lat, route[-1].lon],
            popup=title or "Destination",
            icon=folium.Icon(color="red", icon="flag")
        ).add_to(route_layer)
        route_layer.add_to(m)

    if frames:
        trail_layer = folium.FeatureGroup(name="Smoothed marker", show=True)
        folium.PolyLine(
            [[p.lat, p.lon] for p in frames],
            weight=3,
            color="#22c55e",
            opacity=0.9,
            popup="Smoothed marker trail"
        ).add_to(trail_layer)
        trail_layer.add_to(m)

    if samples:
        samples_layer = folium.FeatureGroup(name="GPS samples", show=True)
        for i, sample in enumerate(samples):
            accuracy = f"{sample.accuracy:.0f}m" if sample.accuracy is not None else "unknown"
            heading = f"{sample.heading:.0f}°" if sample.heading is not None else "unknown"
            popup = f"""
                <b>Sample {i + 1}</b><br>
                Lat: {sample.position.lat:.6f}<br>
                Lon: {sample.position.lon:.6f}<br>
                Accuracy: {accuracy}<br>
                Heading: {heading}
            """
            folium.CircleMarker(
                [sample.position.lat, sample.position.lon],
                radius=3,
                color="#f97316",
                fill=True,
                popup=folium.Popup(popup, max_width=200)
            ).add_to(samples_layer)
        samples_layer.add_to(m)

    folium.LayerControl().add_to(m)
    plugins.Fullscreen().add_to(m)

    return m
