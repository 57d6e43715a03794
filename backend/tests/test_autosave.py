"""
test_autosave.py — Unit tests for the debounced AutosaveScheduler.

Tests cover:
  - Rapid changes coalesce into a single save of the latest state
  - Failed saves are recorded and retried on the next cycle
  - Locked versions surface a notice instead of raising
  - flush() saves immediately and drops the pending timer
"""

import asyncio

from boq_estimator.services.autosave import AutosaveScheduler
from boq_estimator.services.errors import PersistenceFailure, VersionLocked


class Recorder:
    """Save callback that snapshots ``state`` and can be told to fail."""

    def __init__(self):
        self.state = 0
        self.saved = []
        self.fail_with = None

    async def __call__(self):
        if self.fail_with is not None:
            exc, self.fail_with = self.fail_with, None
            raise exc
        self.saved.append(self.state)


# ===========================================================================
# Class 1: Debounce
# ===========================================================================

class TestDebounce:

    def test_rapid_changes_coalesce(self):
        async def scenario():
            rec = Recorder()
            sched = AutosaveScheduler(rec, delay_s=0.02)
            for n in range(5):
                rec.state = n
                sched.schedule()
                await asyncio.sleep(0.001)
            await sched.wait()
            return rec, sched

        rec, sched = asyncio.run(scenario())
        assert rec.saved == [4]
        assert sched.saves_completed == 1

    def test_separate_quiet_periods_save_twice(self):
        async def scenario():
            rec = Recorder()
            sched = AutosaveScheduler(rec, delay_s=0.01)
            rec.state = 1
            sched.schedule()
            await sched.wait()
            rec.state = 2
            sched.schedule()
            await sched.wait()
            return rec

        assert asyncio.run(scenario()).saved == [1, 2]

    def test_pending_flag(self):
        async def scenario():
            sched = AutosaveScheduler(Recorder(), delay_s=0.05)
            assert not sched.pending
            sched.schedule()
            assert sched.pending
            sched.cancel()
            assert not sched.pending

        asyncio.run(scenario())


# ===========================================================================
# Class 2: Failures
# ===========================================================================

class TestFailures:

    def test_failure_then_retry(self):
        async def scenario():
            rec = Recorder()
            sched = AutosaveScheduler(rec, delay_s=0.01)
            rec.fail_with = PersistenceFailure("database unreachable")
            rec.state = 1
            sched.schedule()
            await sched.wait()
            first = list(rec.saved)
            rec.state = 2
            sched.schedule()
            await sched.wait()
            return first, rec, sched

        first, rec, sched = asyncio.run(scenario())
        assert first == []
        assert rec.saved == [2]
        assert [n.kind for n in sched.notices] == ["persistence_failure"]

    def test_locked_version_recorded(self):
        async def scenario():
            rec = Recorder()
            rec.fail_with = VersionLocked("v-1", "save working set")
            sched = AutosaveScheduler(rec, delay_s=0.01)
            ok = await sched.flush()
            return ok, sched

        ok, sched = asyncio.run(scenario())
        assert ok is False
        assert sched.notices[0].kind == "version_locked"
        assert "v-1" in sched.notices[0].message


# ===========================================================================
# Class 3: Flush
# ===========================================================================

class TestFlush:

    def test_flush_saves_now_and_cancels_timer(self):
        async def scenario():
            rec = Recorder()
            sched = AutosaveScheduler(rec, delay_s=0.05)
            rec.state = 7
            sched.schedule()
            ok = await sched.flush()
            await asyncio.sleep(0.08)
            return ok, rec, sched

        ok, rec, sched = asyncio.run(scenario())
        assert ok is True
        assert rec.saved == [7]
        assert not sched.pending
