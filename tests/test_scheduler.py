"""Tests for the cooperative Scheduler."""

import pytest

from scheduler import Scheduler


def test_timer_fires_only_once_deadline_passes(clock, scheduler):
    calls = []
    scheduler.schedule(3000, lambda: calls.append("fired"))

    clock.advance(2999)
    assert scheduler.run_due() == 0
    assert calls == []

    clock.advance(1)
    assert scheduler.run_due() == 1
    assert calls == ["fired"]

    clock.advance(10_000)
    assert scheduler.run_due() == 0
    assert calls == ["fired"]


def test_cancelled_timer_never_fires(clock, scheduler):
    calls = []
    handle = scheduler.schedule(100, lambda: calls.append(1))
    handle.cancel()
    clock.advance(500)
    scheduler.run_due()
    assert calls == []
    assert not handle.active
    assert scheduler.pending() == 0


def test_due_timers_fire_in_deadline_then_schedule_order(clock, scheduler):
    order = []
    scheduler.schedule(200, lambda: order.append("b"))
    scheduler.schedule(100, lambda: order.append("a"))
    scheduler.schedule(200, lambda: order.append("c"))
    clock.advance(250)
    scheduler.run_due()
    assert order == ["a", "b", "c"]


def test_handle_state_after_firing(clock, scheduler):
    handle = scheduler.schedule(0, lambda: None)
    assert handle.active
    scheduler.run_due()
    assert handle.fired
    assert not handle.active
    handle.cancel()   # harmless after the fact


def test_negative_delay_rejected(scheduler):
    with pytest.raises(ValueError):
        scheduler.schedule(-1, lambda: None)


def test_default_clock_is_monotonic_ms():
    s = Scheduler()
    a = s.now_ms()
    b = s.now_ms()
    assert b >= a
