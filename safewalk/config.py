"""Configuration settings for SafeWalk."""

CONFIG = {
    # Tracking thresholds
    "arrival_radius": 20,  # meters - arrival when closer than this to the destination
    "route_deviation_threshold": 50,  # meters - off-route when farther than this from every route vertex
    "route_deviation_mode": "vertex",  # "vertex" (nearest vertex) or "segment" (point-to-segment)
    "walking_speed_kmh": 5.0,  # average walking speed for ETA
    "heading_min_movement": 1.0,  # meters - smaller moves keep the previous heading
    # Progress above each threshold (percent) qualifies for at least that instruction step
    "progress_step_thresholds": [(20, 1), (40, 2), (60, 3), (80, 4)],
    # Session timing
    "arrival_stop_delay": 2.0,  # seconds - success state shown before auto-stop
    "elapsed_tick_interval": 1.0,  # seconds between elapsed-time ticks
    "log_interval": 10,  # seconds of elapsed time between STATE log entries
    # Marker smoothing
    "animation_duration": 1.0,  # seconds per interpolation
    "animation_frame_interval": 1 / 60,  # seconds between animation frames
    # Position source options used while tracking (always-fresh samples)
    "geolocation_options": {
        "high_accuracy": True,
        "max_cache_age_ms": 0,
        "timeout_ms": 10000,
    },
    "gps_poll_interval": 1,  # seconds between termux-location polls
    # Persistence
    "history_db": "safewalk_history.db",
    "remote_timeout": 10,  # seconds per location upload
    # Directions search
    "directions_url": "https://maps.googleapis.com/maps/api/directions/json",
    "directions_timeout": 15,  # seconds
    "max_route_alternatives": 3,
    "maps_api_key_env": "GOOGLE_MAPS_API_KEY",
    # Debug GUI
    "debug_http_port": 8080,
    "debug_ws_port": 8765,
}
