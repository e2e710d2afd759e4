"""
ChoreLock — Gatekeeper Service.

Runs the engine on one asyncio event loop. Every trigger (periodic tick,
wake-from-sleep, assignment change, task toggle, admin edits) is posted to a
single request queue and applied in order, so an evaluation never interleaves
with a mutation of today's tasks.

Completion-log writes run one at a time on a dedicated worker thread and
never block a lock/unlock decision.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from chorelock.core.completion_log import CompletionLog
from chorelock.core.lock_engine import GatekeeperEngine, LockState

if TYPE_CHECKING:
    from chorelock.data.db import PreferenceDB
    from chorelock.ports.screen_port import ScreenPort

logger = logging.getLogger(__name__)

Action = Callable[[datetime], Any]


@dataclass
class _Request:
    reason: str
    action: Action | None
    future: asyncio.Future | None
    reapply: bool = False  # re-run the lock side effect even if the state is unchanged


class GatekeeperService:
    """Serializes engine access and drives the screen from lock-state changes."""

    def __init__(
        self,
        engine: GatekeeperEngine,
        screen: ScreenPort,
        preferences: PreferenceDB | None = None,
        tick_seconds: float = 60.0,
        wake_gap_seconds: float = 120.0,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._engine = engine
        self._screen = screen
        self._preferences = preferences
        self._tick_seconds = tick_seconds
        self._wake_gap_seconds = wake_gap_seconds
        self._clock = clock
        self._queue: asyncio.Queue[_Request | None] = asyncio.Queue()
        self._worker_task: asyncio.Task | None = None
        self._tick_task: asyncio.Task | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._pending_writes: set[asyncio.Future] = set()
        self._stopped = asyncio.Event()
        engine.subscribe(self._apply_state)

    @property
    def engine(self) -> GatekeeperEngine:
        return self._engine

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def _apply_state(self, state: LockState) -> None:
        if state is LockState.LOCKED:
            self._screen.lock()
        else:
            self._screen.unlock()

    def _persist_in_background(self, log: CompletionLog) -> None:
        """Write a snapshot of the log off-loop; errors are logged by persist()."""
        snapshot = CompletionLog(log.entries, retention_days=log.retention_days)
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._executor, snapshot.persist, self._preferences)
        self._pending_writes.add(future)
        future.add_done_callback(self._pending_writes.discard)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Record the session start, then begin processing and ticking."""
        if self.running:
            return
        if self._preferences is not None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="chorelock-persist",
            )
            self._engine.set_log_persister(self._persist_in_background)
        self._engine.record_session_start(self._clock())
        self._stopped.clear()
        self._worker_task = asyncio.create_task(self._worker(), name="chorelock-worker")
        self._tick_task = asyncio.create_task(self._tick_loop(), name="chorelock-tick")
        self.request_evaluation("startup")
        logger.info("Gatekeeper service started")

    async def stop(self) -> None:
        """Drain queued requests, flush log writes, and mark a clean exit."""
        if self._tick_task is not None:
            self._tick_task.cancel()
            try:
                await self._tick_task
            except asyncio.CancelledError:
                pass
            self._tick_task = None

        if self._worker_task is not None:
            await self._queue.put(None)
            await self._worker_task
            self._worker_task = None

        if self._pending_writes:
            await asyncio.gather(*self._pending_writes, return_exceptions=True)
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

        self._engine.record_session_end()
        self._stopped.set()
        logger.info("Gatekeeper service stopped")

    async def wait_stopped(self) -> None:
        await self._stopped.wait()

    # ------------------------------------------------------------------
    # Request queue
    # ------------------------------------------------------------------

    def request_evaluation(self, reason: str = "manual", reapply: bool = False) -> None:
        """Post a re-evaluation without waiting for it.

        With reapply, a LOCKED state that did not change is pushed to the
        screen again, so a session the user unlocked at the OS level is
        locked once more.
        """
        self._queue.put_nowait(
            _Request(reason=reason, action=None, future=None, reapply=reapply)
        )

    def notify_wake(self) -> None:
        self.request_evaluation("wake", reapply=True)

    async def submit(self, action: Action, reason: str = "action") -> Any:
        """Run `action(now)` on the serialized worker, then re-evaluate.

        Returns the action's result; exceptions it raises reach the caller.
        """
        future = asyncio.get_running_loop().create_future()
        await self._queue.put(_Request(reason=reason, action=action, future=future))
        return await future

    async def _worker(self) -> None:
        while True:
            request = await self._queue.get()
            try:
                if request is None:
                    return
                self._handle(request)
            finally:
                self._queue.task_done()

    def _handle(self, request: _Request) -> None:
        now = self._clock()
        logger.debug("Handling %s request at %s", request.reason, now.isoformat())
        try:
            result = request.action(now) if request.action is not None else None
        except Exception as exc:
            if request.future is not None and not request.future.done():
                request.future.set_exception(exc)
            else:
                logger.error("%s request failed: %s", request.reason, exc)
            return

        previous = self._engine.state
        try:
            state = self._engine.evaluate(now)
        except Exception as exc:
            logger.error("Evaluation after %s failed: %s", request.reason, exc)
        else:
            if request.reapply and state is LockState.LOCKED and previous is state:
                self._apply_state(state)

        if request.future is not None and not request.future.done():
            request.future.set_result(result)

    async def _tick_loop(self) -> None:
        """Post a tick every interval; a long wall-clock gap means the host slept."""
        last_wall = self._clock()
        while True:
            await asyncio.sleep(self._tick_seconds)
            now = self._clock()
            gap = (now - last_wall).total_seconds() - self._tick_seconds
            last_wall = now
            if gap > self._wake_gap_seconds:
                logger.info("Detected wake from sleep (%.0fs gap)", gap)
                self.notify_wake()
            else:
                self.request_evaluation("tick", reapply=True)

    # ------------------------------------------------------------------
    # Convenience wrappers for the presentation adapter
    # ------------------------------------------------------------------

    async def evaluate_now(self) -> LockState:
        return await self.submit(self._engine.evaluate, "evaluate")

    async def assign(self, name: str | None) -> LockState:
        return await self.submit(lambda now: self._engine.assign(name, now), "assignment")

    async def toggle_task(self, task_id: str) -> bool:
        return await self.submit(
            lambda now: self._engine.toggle_task(task_id, now), "task toggle",
        )

    async def mark_current_person_done(self) -> LockState | None:
        return await self.submit(self._engine.mark_current_person_done, "completion")

    async def admin_unlock(self) -> LockState:
        return await self.submit(self._engine.admin_unlock, "admin unlock")
