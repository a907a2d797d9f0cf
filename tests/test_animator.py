import pytest

from safewalk.animator import Animation, PositionAnimator, ease_out_cubic, interpolate
from safewalk.models import GeoPoint
from safewalk.scheduler import VirtualScheduler

A = GeoPoint(51.5, -0.1)
B = GeoPoint(51.501, -0.1)
C = GeoPoint(51.501, -0.099)


@pytest.fixture
def scheduler():
    return VirtualScheduler()


@pytest.fixture
def frames():
    return []


@pytest.fixture
def animator(scheduler, frames):
    animator = PositionAnimator(scheduler)
    animator.add_listener(frames.append)
    return animator


def test_ease_out_cubic():
    assert ease_out_cubic(0) == 0
    assert ease_out_cubic(0.5) == pytest.approx(0.875)
    assert ease_out_cubic(1) == 1


def test_interpolate():
    middle = interpolate(A, C, 0.5)
    assert middle.lat == pytest.approx(51.5005)
    assert middle.lon == pytest.approx(-0.0995)


def test_first_target_snaps(animator, frames):
    animator.push(A)
    assert animator.displayed == A
    assert frames == [A]
    assert not animator.is_animating


def test_glides_to_new_target(animator, scheduler, frames):
    animator.push(A)
    animator.push(B)
    assert animator.is_animating

    halfway = animator.position_at(0.5)
    assert halfway.lat == pytest.approx(A.lat + (B.lat - A.lat) * 0.875)

    scheduler.advance(1.1)
    assert animator.displayed == B
    assert not animator.is_animating
    assert frames[-1] == B
    # Roughly one frame per 1/60 s over the one second animation
    assert 55 <= len(frames) - 1 <= 62
    assert scheduler.pending() == 0


def test_frames_move_monotonically_towards_target(animator, scheduler, frames):
    animator.push(A)
    animator.push(B)
    scheduler.advance(1.1)

    lats = [p.lat for p in frames]
    assert lats == sorted(lats)


def test_new_target_restarts_from_displayed_position(animator, scheduler, frames):
    animator.push(A)
    animator.push(B)
    scheduler.advance(0.5)
    shown = animator.displayed
    assert A.lat < shown.lat < B.lat

    animator.push(C)
    assert animator.animation == Animation(start=shown, target=C, start_time=scheduler.time())

    scheduler.advance(1.1)
    assert animator.displayed == C
    assert scheduler.pending() == 0


def test_reset_forgets_position(animator, scheduler, frames):
    animator.push(A)
    animator.push(B)
    animator.reset()

    assert animator.displayed is None
    assert not animator.is_animating
    assert scheduler.pending() == 0

    animator.push(C)
    assert animator.displayed == C
    assert frames[-1] == C
