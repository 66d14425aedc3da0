"""Tests for sync/scheduling.py"""
import asyncio

import pytest

from blocksync.sync import AsyncioScheduler, ManualScheduler, Scheduler, default_scheduler


class TestManualScheduler:
    def test_timer_fires_at_deadline(self):
        sched = ManualScheduler()
        fired = []
        sched.call_later(0.5, lambda: fired.append("a"))

        assert sched.advance(0.4) == 0
        assert fired == []
        assert sched.advance(0.1) == 1
        assert fired == ["a"]
        assert sched.pending == 0

    def test_deadline_order(self):
        sched = ManualScheduler()
        fired = []
        sched.call_later(2, lambda: fired.append("late"))
        sched.call_later(1, lambda: fired.append("early"))
        sched.advance(5)
        assert fired == ["early", "late"]

    def test_cancelled_timer_never_fires(self):
        sched = ManualScheduler()
        fired = []
        handle = sched.call_later(1, lambda: fired.append("x"))
        handle.cancel()
        assert sched.pending == 0
        assert sched.advance(2) == 0
        assert fired == []

    def test_negative_delay_runs_on_next_pump(self):
        sched = ManualScheduler()
        fired = []
        sched.call_later(-3, lambda: fired.append("x"))
        assert sched.run_due() == 1
        assert fired == ["x"]

    def test_external_clock(self):
        now = [10.0]
        sched = ManualScheduler(clock=lambda: now[0])
        fired = []
        sched.call_later(1, lambda: fired.append("x"))
        assert sched.run_due() == 0
        now[0] = 11.0
        assert sched.run_due() == 1
        with pytest.raises(ValueError):
            sched.advance(1)

    def test_negative_advance_rejected(self):
        with pytest.raises(ValueError, match="seconds"):
            ManualScheduler().advance(-1)

    def test_satisfies_protocol(self):
        assert isinstance(ManualScheduler(), Scheduler)


class TestAsyncioScheduler:
    def test_uses_running_loop(self):
        async def scenario():
            fired = []
            sched = AsyncioScheduler()
            sched.call_later(0.01, lambda: fired.append("x"))
            await asyncio.sleep(0.05)
            return fired

        assert asyncio.run(scenario()) == ["x"]

    def test_cancel(self):
        async def scenario():
            fired = []
            handle = AsyncioScheduler().call_later(0.01, lambda: fired.append("x"))
            handle.cancel()
            await asyncio.sleep(0.03)
            return fired

        assert asyncio.run(scenario()) == []


class TestDefaultScheduler:
    def test_outside_loop_is_manual(self):
        assert isinstance(default_scheduler(), ManualScheduler)

    def test_inside_loop_is_asyncio(self):
        async def scenario():
            return default_scheduler()

        assert isinstance(asyncio.run(scenario()), AsyncioScheduler)
