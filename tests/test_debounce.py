import os
import sys

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from stocksync.client.debounce import DebouncedSink
from support import ManualScheduler


def _sink(scheduler, writes, interval=1.5):
    return DebouncedSink(
        "inventory",
        interval,
        lambda key, value: writes.append((scheduler.now, key, value)),
        scheduler,
    )


def test_burst_is_written_once_after_quiet_period():
    scheduler = ManualScheduler()
    writes = []
    sink = _sink(scheduler, writes)

    sink.submit("first")
    scheduler.advance(0.5)
    sink.submit("second")
    scheduler.advance(1.4)
    assert writes == []

    scheduler.advance(0.1)
    assert writes == [(2.0, "inventory", "second")]

    scheduler.advance(10)
    assert len(writes) == 1


def test_many_rapid_submits_coalesce():
    scheduler = ManualScheduler()
    writes = []
    sink = _sink(scheduler, writes)

    for value in range(20):
        sink.submit(value)
        scheduler.advance(0.1)
    scheduler.advance(5)

    assert [value for _, _, value in writes] == [19]


def test_flush_delivers_immediately_and_cancels_timer():
    scheduler = ManualScheduler()
    writes = []
    sink = _sink(scheduler, writes)

    sink.submit("value")
    assert sink.has_pending
    assert sink.flush() is True
    assert sink.flush() is False
    scheduler.advance(5)

    assert [value for _, _, value in writes] == ["value"]
    assert not sink.has_pending


def test_cancel_drops_pending_value():
    scheduler = ManualScheduler()
    writes = []
    sink = _sink(scheduler, writes)

    sink.submit("stale")
    assert sink.cancel() is True
    scheduler.advance(5)

    assert writes == []


def test_superseded_timer_that_fires_late_is_ignored():
    scheduler = ManualScheduler()
    writes = []
    sink = _sink(scheduler, writes)

    sink.submit("old")
    stale_timer = scheduler._timers[0]
    sink.submit("new")
    stale_timer.callback()

    assert writes == []
    scheduler.advance(1.5)
    assert [value for _, _, value in writes] == ["new"]


def test_failing_flush_keeps_sink_usable():
    scheduler = ManualScheduler()
    calls = []

    def on_flush(key, value):
        calls.append(value)
        if value == "boom":
            raise RuntimeError("push exploded")

    sink = DebouncedSink("users", 1.0, on_flush, scheduler)
    sink.submit("boom")
    scheduler.advance(1.0)
    sink.submit("ok")
    scheduler.advance(1.0)

    assert calls == ["boom", "ok"]
