import threading

import pytest

from performance_rnn.playback import ManualClock, MonotonicClock, Scheduler


def test_run_due_in_time_order() -> None:
    clock = ManualClock()
    scheduler = Scheduler(clock)
    calls = []

    scheduler.call_at(2.0, calls.append, "late")
    scheduler.call_at(1.0, calls.append, "first")
    scheduler.call_at(1.0, calls.append, "second")

    assert scheduler.run_due() == 0

    clock.set(1.0)
    assert scheduler.run_due() == 2
    assert calls == ["first", "second"]
    assert scheduler.pending() == 1

    clock.advance(5.0)
    scheduler.run_due()
    assert calls == ["first", "second", "late"]


def test_call_later_is_relative_to_clock() -> None:
    clock = ManualClock(start=10.0)
    scheduler = Scheduler(clock)
    calls = []

    scheduler.call_later(0.5, calls.append, 1)
    clock.set(10.4)
    scheduler.run_due()
    assert calls == []

    clock.set(10.5)
    scheduler.run_due()
    assert calls == [1]


def test_cancel_all() -> None:
    scheduler = Scheduler(ManualClock())
    scheduler.call_at(1.0, print)
    scheduler.call_at(2.0, print)

    assert scheduler.cancel_all() == 2
    assert scheduler.pending() == 0


def test_cancel_all_drops_rest_of_running_batch() -> None:
    scheduler = Scheduler(ManualClock())
    calls = []

    scheduler.call_at(0.0, scheduler.cancel_all)
    scheduler.call_at(0.0, calls.append, "dropped")
    scheduler.call_at(1.0, calls.append, "later")

    assert scheduler.run_due() == 1
    assert calls == []
    assert scheduler.pending() == 0

    scheduler.call_at(0.0, calls.append, "new")
    assert scheduler.run_due() == 1
    assert calls == ["new"]


def test_failing_callback_is_logged(caplog) -> None:
    scheduler = Scheduler(ManualClock())
    calls = []

    def _boom():
        raise RuntimeError("boom")

    scheduler.call_at(0.0, _boom)
    scheduler.call_at(0.0, calls.append, "after")

    with caplog.at_level("ERROR"):
        scheduler.run_due()

    assert calls == ["after"]
    assert "boom" in caplog.text


def test_background_thread_dispatches() -> None:
    scheduler = Scheduler(MonotonicClock())
    fired = threading.Event()

    scheduler.start()
    try:
        assert scheduler.is_running
        scheduler.call_later(0.01, fired.set)
        assert fired.wait(2.0)
    finally:
        scheduler.stop()

    assert not scheduler.is_running


def test_manual_clock_cannot_go_backwards() -> None:
    clock = ManualClock()
    with pytest.raises(ValueError):
        clock.advance(-1.0)
