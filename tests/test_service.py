"""Tests for chorelock.core.service — serialized request handling."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from chorelock.adapters.log_screen import LoggingScreen
from chorelock.core.completion_log import CompletionLog
from chorelock.core.lock_engine import GatekeeperEngine, LockState
from chorelock.core.service import GatekeeperService
from chorelock.data.db import CLEAN_EXIT_KEY

FRIDAY_7AM = datetime(2026, 10, 16, 7, 0)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _make_service(engine, preferences=None, tick_seconds=60.0, now=FRIDAY_7AM):
    clock = FakeClock(now)
    screen = LoggingScreen()
    service = GatekeeperService(
        engine,
        screen,
        preferences=preferences,
        tick_seconds=tick_seconds,
        wake_gap_seconds=120.0,
        clock=clock,
    )
    return service, screen, clock


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_startup_evaluation_locks_screen(self, engine):
        service, screen, _ = _make_service(engine)
        await service.start()
        try:
            assert await service.evaluate_now() is LockState.LOCKED
            assert screen.locked is True
            assert service.running is True
        finally:
            await service.stop()
        assert service.running is False

    @pytest.mark.asyncio
    async def test_stop_marks_clean_exit(self, stored_engine, preference_db):
        service, _, _ = _make_service(stored_engine, preferences=preference_db)
        await service.start()
        assert preference_db.get_bool(CLEAN_EXIT_KEY, default=True) is False
        await service.stop()
        assert preference_db.get_bool(CLEAN_EXIT_KEY) is True

    @pytest.mark.asyncio
    async def test_start_twice_is_harmless(self, engine):
        service, _, _ = _make_service(engine)
        await service.start()
        await service.start()
        await service.stop()

    @pytest.mark.asyncio
    async def test_wait_stopped(self, engine):
        service, _, _ = _make_service(engine)
        await service.start()
        waiter = asyncio.create_task(service.wait_stopped())
        await service.stop()
        await asyncio.wait_for(waiter, timeout=1)


# ---------------------------------------------------------------------------
# User actions
# ---------------------------------------------------------------------------


class TestActions:
    @pytest.mark.asyncio
    async def test_completing_tasks_unlocks(self, engine, micah):
        service, screen, _ = _make_service(engine)
        await service.start()
        try:
            assert await service.assign("Micah") is LockState.LOCKED
            for task in list(micah.today_tasks):
                assert await service.toggle_task(task.id) is True
            assert screen.locked is False
            assert micah.last_completed_date == FRIDAY_7AM
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_completion_log_written_in_background(self, stored_engine, preference_db):
        service, _, _ = _make_service(stored_engine, preferences=preference_db)
        await service.start()
        await service.assign("Micah")
        assert await service.mark_current_person_done() is LockState.UNLOCKED
        await service.stop()

        names = [e.person_name for e in CompletionLog.load(preference_db, FRIDAY_7AM).entries]
        # Newest first: the completion, then the first-run unclean-exit entry
        assert names[0] == "Micah"
        assert len(names) == 2

    @pytest.mark.asyncio
    async def test_admin_unlock(self, engine):
        service, screen, _ = _make_service(engine)
        await service.start()
        try:
            await service.evaluate_now()
            assert screen.locked is True
            assert await service.admin_unlock() is LockState.UNLOCKED
            assert screen.locked is False
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_template_edit_is_reevaluated(self, engine, micah):
        service, _, _ = _make_service(engine)
        await service.start()
        try:
            await service.assign("Micah")
            await service.submit(
                lambda now: engine.add_task("Micah", weekend=False, title="Pack Bag"),
                "template edit",
            )
            assert [t.title for t in micah.today_tasks][-1] == "Pack Bag"
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_action_error_reaches_caller_and_worker_survives(self, engine):
        service, _, _ = _make_service(engine)
        await service.start()
        try:
            with pytest.raises(KeyError):
                await service.submit(
                    lambda now: engine.add_task("Nobody", weekend=False), "bad edit",
                )
            assert await service.evaluate_now() is LockState.LOCKED
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_requests_run_in_order(self, engine):
        service, _, _ = _make_service(engine)
        seen = []
        await service.start()
        try:
            await asyncio.gather(*(
                service.submit(lambda now, i=i: seen.append(i), f"req {i}")
                for i in range(10)
            ))
        finally:
            await service.stop()
        assert seen == list(range(10))


# ---------------------------------------------------------------------------
# Tick loop
# ---------------------------------------------------------------------------


class TestTicks:
    @pytest.mark.asyncio
    async def test_tick_catches_window_end(self, engine):
        service, screen, clock = _make_service(
            engine, tick_seconds=0.01, now=FRIDAY_7AM.replace(hour=8, minute=59),
        )
        await service.start()
        try:
            await service.evaluate_now()
            assert screen.locked is True
            clock.now = FRIDAY_7AM.replace(hour=9, minute=0)
            await asyncio.sleep(0.1)
            assert screen.locked is False
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_clock_jump_is_treated_as_wake(self, engine):
        service, _, clock = _make_service(engine, tick_seconds=0.01)
        service.notify_wake = MagicMock(wraps=service.notify_wake)
        await service.start()
        try:
            await asyncio.sleep(0.03)
            service.notify_wake.assert_not_called()
            clock.now = FRIDAY_7AM + timedelta(hours=2)
            await asyncio.sleep(0.05)
            service.notify_wake.assert_called()
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_ticks_reapply_lock_while_locked(self, engine):
        service, screen, _ = _make_service(engine, tick_seconds=0.01)
        await service.start()
        try:
            await service.evaluate_now()
            await asyncio.sleep(0.1)
            # The user may have unlocked the OS session; each tick locks again
            assert screen.calls.count("lock") > 1
            assert "unlock" not in screen.calls
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_ticks_do_not_repeat_unlock(self, engine):
        service, screen, _ = _make_service(
            engine, tick_seconds=0.01, now=FRIDAY_7AM.replace(hour=12),
        )
        await service.start()
        try:
            await service.evaluate_now()
            await asyncio.sleep(0.1)
            assert screen.calls == ["unlock"]
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_manual_evaluation_does_not_reapply(self, engine):
        service, screen, _ = _make_service(engine)
        await service.start()
        try:
            await service.evaluate_now()
            await service.evaluate_now()
            assert screen.calls == ["lock"]
        finally:
            await service.stop()


class TestObserverWiring:
    def test_state_changes_drive_screen(self, micah):
        engine = GatekeeperEngine([micah], start_hour=6, end_hour=9)
        service, screen, _ = _make_service(engine)
        engine.evaluate(FRIDAY_7AM)
        assert screen.locked is True
        engine.evaluate(FRIDAY_7AM.replace(hour=12))
        assert screen.locked is False
        assert service.engine is engine
