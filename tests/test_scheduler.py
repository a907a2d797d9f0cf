import asyncio
import threading

import pytest

from safewalk.scheduler import LoopScheduler, SessionDisposer, VirtualScheduler


def test_callbacks_run_in_time_order():
    scheduler = VirtualScheduler()
    calls = []
    scheduler.call_later(2, calls.append, "second")
    scheduler.call_later(1, calls.append, "first")
    scheduler.call_later(5, calls.append, "later")

    scheduler.advance(3)
    assert calls == ["first", "second"]
    assert scheduler.time() == 3
    assert scheduler.pending() == 1


def test_call_soon_waits_for_run_pending():
    scheduler = VirtualScheduler()
    calls = []
    scheduler.call_soon(calls.append, "now")
    assert calls == []

    scheduler.run_pending()
    assert calls == ["now"]
    assert scheduler.time() == 0


def test_cancelled_timer_does_not_run():
    scheduler = VirtualScheduler()
    calls = []
    timer = scheduler.call_later(1, calls.append, "x")
    timer.cancel()

    scheduler.advance(2)
    assert calls == []
    assert timer.cancelled()


def test_callbacks_scheduled_while_advancing_run_in_window():
    scheduler = VirtualScheduler()
    calls = []

    def first():
        calls.append(("first", scheduler.time()))
        scheduler.call_later(0.5, lambda: calls.append(("nested", scheduler.time())))

    scheduler.call_later(1, first)
    scheduler.advance(2)
    assert calls == [("first", 1), ("nested", 1.5)]


def test_ticker_repeats_until_cancelled():
    scheduler = VirtualScheduler()
    ticks = []
    ticker = scheduler.call_every(1, lambda: ticks.append(scheduler.time()))

    scheduler.advance(3.5)
    assert ticks == [1, 2, 3]

    ticker.cancel()
    scheduler.advance(3)
    assert ticks == [1, 2, 3]
    assert ticker.cancelled()
    assert scheduler.pending() == 0


def test_ticker_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        VirtualScheduler().call_every(0, lambda: None)


def test_disposer_releases_in_reverse_order_once():
    disposer = SessionDisposer("abc")
    released = []
    disposer.add(lambda: released.append("subscription"))
    disposer.add(lambda: released.append("ticker"))

    disposer.dispose()
    disposer.dispose()
    assert released == ["ticker", "subscription"]
    assert disposer.disposed


def test_disposer_cancels_timers():
    scheduler = VirtualScheduler()
    disposer = SessionDisposer("abc")
    calls = []
    timer = disposer.add_timer(scheduler.call_later(1, calls.append, "x"))
    ticker = disposer.add_timer(scheduler.call_every(1, calls.append, "tick"))

    disposer.dispose()
    scheduler.advance(5)
    assert calls == []
    assert timer.cancelled()
    assert ticker.cancelled()


def test_resources_added_after_dispose_are_released_immediately():
    scheduler = VirtualScheduler()
    disposer = SessionDisposer("abc")
    disposer.dispose()

    timer = disposer.add_timer(scheduler.call_later(1, lambda: None))
    assert timer.cancelled()


def test_loop_scheduler_runs_on_event_loop():
    calls = []

    async def main():
        scheduler = LoopScheduler()
        ticker = scheduler.call_every(0.01, calls.append, "tick")
        scheduler.call_later(0.005, calls.append, "later")
        # Posting from another thread lands on the loop
        thread = threading.Thread(target=scheduler.call_soon, args=(calls.append, "thread"))
        thread.start()
        thread.join()
        await asyncio.sleep(0.05)
        ticker.cancel()
        count = calls.count("tick")
        await asyncio.sleep(0.03)
        return count

    count = asyncio.run(main())
    assert "thread" in calls
    assert "later" in calls
    assert count >= 2
    assert calls.count("tick") == count
