"""Smooth marker movement between raw position samples."""

from dataclasses import dataclass
from typing import Callable, Optional

from .config import CONFIG
from .models import GeoPoint


def ease_out_cubic(t: float) -> float:
    return 1 - (1 - t) ** 3


def interpolate(start: GeoPoint, target: GeoPoint, fraction: float) -> GeoPoint:
    """Linear interpolation of latitude and longitude independently"""
    return GeoPoint(
        lat=start.lat + (target.lat - start.lat) * fraction,
        lon=start.lon + (target.lon - start.lon) * fraction,
    )


@dataclass(frozen=True)
class Animation:
    start: GeoPoint
    target: GeoPoint
    start_time: float


class PositionAnimator:
    """Keeps a displayed position that glides towards each new raw target.

    Listeners (marker, accuracy circle, heading arrow) are called with the
    displayed position on every frame. A target arriving mid-animation
    replaces the running animation, starting from the last displayed frame.
    """

    def __init__(self, scheduler, duration: Optional[float] = None,
                 frame_interval: Optional[float] = None):
        self.scheduler = scheduler
        self.duration = duration or CONFIG["animation_duration"]
        self.frame_interval = frame_interval or CONFIG["animation_frame_interval"]
        self.displayed: Optional[GeoPoint] = None
        self.animation: Optional[Animation] = None
        self._frames = None
        self._listeners: list[Callable[[GeoPoint], None]] = []

    def add_listener(self, listener: Callable[[GeoPoint], None]):
        self._listeners.append(listener)

    @property
    def is_animating(self) -> bool:
        return self.animation is not None

    def push(self, target: GeoPoint):
        """Move the displayed position towards a new raw target"""
        if self.displayed is None:
            self.displayed = target
            self._notify()
            return

        self._cancel_frames()
        self.animation = Animation(start=self.displayed, target=target,
                                   start_time=self.scheduler.time())
        self._frames = self.scheduler.call_every(self.frame_interval, self._frame)

    def reset(self):
        """Forget the displayed position and stop any animation"""
        self._cancel_frames()
        self.displayed = None

    def position_at(self, now: float) -> Optional[GeoPoint]:
        """Displayed position the running animation gives at time now"""
        animation = self.animation
        if animation is None:
            return self.displayed
        t = (now - animation.start_time) / self.duration
        t = max(0.0, min(1.0, t))
        return interpolate(animation.start, animation.target, ease_out_cubic(t))

    def _frame(self):
        animation = self.animation
        if animation is None:
            return
        now = self.scheduler.time()
        self.displayed = self.position_at(now)
        if now - animation.start_time >= self.duration:
            self.displayed = animation.target
            self._cancel_frames()
        self._notify()

    def _cancel_frames(self):
        if self._frames is not None:
            self._frames.cancel()
            self._frames = None
        self.animation = None

    def _notify(self):
        for listener in self._listeners:
            listener(self.displayed)
