import asyncio
import threading
import time

from safewalk import audio
from safewalk.audio import Audio, message_for
from safewalk.events import (
    Arrived,
    GpsError,
    NavigationStarted,
    NavigationStopped,
    OffRouteCleared,
    OffRouteEntered,
    StateUpdated,
)
from safewalk.models import GeoPoint, GpsErrorKind, NavigationState
from safewalk.scheduler import LoopScheduler

HERE = GeoPoint(51.5, -0.1)


def test_messages_for_navigation_events():
    assert message_for(NavigationStarted("s1", HERE)).startswith("GPS navigation started")
    assert message_for(OffRouteEntered("s1", HERE, 75.0)).startswith("Off route")
    assert message_for(OffRouteCleared("s1", HERE)) == "Back on route."
    assert message_for(Arrived("s1", HERE, 12.0)).startswith("You have arrived")
    assert message_for(NavigationStopped("s1", "manual")).startswith("Navigation stopped")
    error = GpsError("s1", GpsErrorKind.TIMEOUT, "GPS signal timeout. Retrying...", False)
    assert message_for(error) == "GPS error. GPS signal timeout. Retrying..."


def test_silent_events():
    assert message_for(StateUpdated(NavigationState())) is None
    assert message_for(NavigationStopped("s1", "restart")) is None


def test_announce_falls_back_to_print(monkeypatch, capsys):
    def missing_espeak(*args, **kwargs):
        raise FileNotFoundError("espeak")

    spoken = []
    monkeypatch.setattr(audio.subprocess, "run", missing_espeak)
    monkeypatch.setattr(Audio, "callback", spoken.append)

    Audio.announce(OffRouteCleared("s1", HERE))
    Audio.announce(StateUpdated(NavigationState()))

    Audio.wait()
    assert spoken == ["Back on route."]
    assert "[AUDIO] Back on route." in capsys.readouterr().out


def test_announce_returns_while_speech_plays(monkeypatch):
    speaking = threading.Event()
    release = threading.Event()

    def slow_espeak(*args, **kwargs):
        speaking.set()
        release.wait(5)

    spoken = []
    monkeypatch.setattr(audio.subprocess, "run", slow_espeak)
    monkeypatch.setattr(Audio, "callback", spoken.append)

    started = time.monotonic()
    Audio.announce(Arrived("s1", HERE, 12.0))
    assert time.monotonic() - started < 0.1
    assert spoken == ["You have arrived. You have reached your destination."]

    assert speaking.wait(2)
    release.set()
    Audio.wait()


def test_speech_does_not_stall_loop_frames(monkeypatch):
    release = threading.Event()

    def slow_espeak(*args, **kwargs):
        release.wait(5)

    monkeypatch.setattr(audio.subprocess, "run", slow_espeak)
    monkeypatch.setattr(Audio, "callback", None)

    async def run():
        scheduler = LoopScheduler()
        frames = []
        ticker = scheduler.call_every(1 / 60, lambda: frames.append(scheduler.time()))
        scheduler.call_soon(Audio.announce, NavigationStarted("s1", HERE))
        await asyncio.sleep(0.3)
        ticker.cancel()
        return frames

    try:
        frames = asyncio.run(run())
    finally:
        release.set()
        Audio.wait()

    gaps = [b - a for a, b in zip(frames, frames[1:])]
    assert len(frames) > 5
    assert max(gaps) < 0.1
