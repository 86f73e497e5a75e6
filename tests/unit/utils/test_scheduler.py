import threading

from app.utils.scheduler import ManualScheduler, ThreadingScheduler


def test_manual_scheduler_fires_in_deadline_order():
    scheduler = ManualScheduler()
    fired = []
    scheduler.call_later(2, lambda: fired.append("b"))
    scheduler.call_later(1, lambda: fired.append("a"))

    scheduler.advance(1.5)
    assert fired == ["a"]
    scheduler.advance(1)
    assert fired == ["a", "b"]
    assert scheduler.now() == 2.5


def test_cancelled_timer_never_fires():
    scheduler = ManualScheduler()
    fired = []
    handle = scheduler.call_later(1, lambda: fired.append("x"))
    handle.cancel()
    handle.cancel()

    scheduler.advance(5)
    assert fired == []
    assert handle.cancelled
    assert scheduler.pending == 0


def test_timers_scheduled_during_advance_fire_inside_window():
    scheduler = ManualScheduler()
    fired = []

    def first():
        fired.append(scheduler.now())
        scheduler.call_later(1, lambda: fired.append(scheduler.now()))

    scheduler.call_later(1, first)
    scheduler.advance(3)
    assert fired == [1, 2]


def test_callback_errors_do_not_stop_the_clock():
    scheduler = ManualScheduler()
    fired = []

    def broken():
        raise RuntimeError("boom")

    scheduler.call_later(1, broken)
    scheduler.call_later(2, lambda: fired.append(True))
    scheduler.advance(2)
    assert fired == [True]


def test_threading_scheduler_runs_callback():
    done = threading.Event()
    ThreadingScheduler().call_later(0.01, done.set)
    assert done.wait(timeout=2)


def test_threading_scheduler_cancel():
    done = threading.Event()
    handle = ThreadingScheduler().call_later(0.2, done.set)
    handle.cancel()
    assert not done.wait(timeout=0.4)
