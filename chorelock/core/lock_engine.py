"""
ChoreLock — Lock Decision Engine.

Holds all gatekeeper state (people, assignment, completion log, lock state)
and decides from the wall clock whether the device should be locked.

The engine is UI-agnostic: observers subscribe to lock-state changes and a
presentation adapter turns them into lock()/unlock() side effects. It is not
thread-safe; GatekeeperService serializes every call onto one event loop.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING

from chorelock.core.completion_log import DEFAULT_RETENTION_DAYS, CompletionLog
from chorelock.core.daily_tasks import (
    DEFAULT_WEEKEND_DAYS,
    ensure_today_tasks_loaded,
    instantiate,
    start_of_day,
)
from chorelock.data.db import (
    ASSIGNED_PERSON_KEY,
    CLEAN_EXIT_KEY,
    LAUNCH_AT_LOGIN_KEY,
)
from chorelock.data.models import (
    SYSTEM_UNCLEAN_EXIT_NAME,
    CompletionLogEntry,
    Person,
    TaskItem,
)

if TYPE_CHECKING:
    from chorelock.data.db import PreferenceDB, TemplateDB

logger = logging.getLogger(__name__)

DEFAULT_NEW_TASK_TITLE = "New Task"


class LockState(Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"


LockObserver = Callable[[LockState], None]


class GatekeeperEngine:
    """Decides LOCKED/UNLOCKED and owns every piece of mutable gatekeeper state.

    Construct one per process (or per test) and pass it to whoever needs it.
    Stores are optional: without them the engine runs purely in memory.
    """

    def __init__(
        self,
        people: list[Person],
        preferences: PreferenceDB | None = None,
        templates: TemplateDB | None = None,
        start_hour: int = 6,
        end_hour: int = 9,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        weekend_days: Iterable[int] = DEFAULT_WEEKEND_DAYS,
        completion_log: CompletionLog | None = None,
    ) -> None:
        self.people = people
        self.start_hour = start_hour
        self.end_hour = end_hour
        self.weekend_days = frozenset(weekend_days)
        self._preferences = preferences
        self._templates = templates
        self.completion_log = completion_log or CompletionLog(retention_days=retention_days)
        self._state: LockState | None = None
        self._observers: list[LockObserver] = []
        self._override_day: date | None = None
        self._log_persister: Callable[[CompletionLog], None] = self._persist_log_now

        self.assigned_name = ""
        if preferences is not None:
            self.assigned_name = preferences.get(ASSIGNED_PERSON_KEY, "") or ""

        if not self.window_is_valid:
            logger.error(
                "Invalid chore window [%02d:00, %02d:00): start must be before end; "
                "the screen will never lock",
                start_hour, end_hour,
            )

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_stores(
        cls,
        preferences: PreferenceDB,
        templates: TemplateDB,
        now: datetime,
        default_people: Callable[[], list[Person]],
        **kwargs,
    ) -> GatekeeperEngine:
        """Build an engine from persisted templates and the stored log.

        On first run (no stored templates) the defaults are saved.
        """
        people = templates.load_people()
        if people is None:
            people = default_people()
            try:
                templates.save_people(people)
            except Exception as exc:
                logger.warning("Failed to store default templates: %s", exc)
            logger.info("Created %d default people", len(people))

        retention_days = kwargs.pop("retention_days", DEFAULT_RETENTION_DAYS)
        log = CompletionLog.load(preferences, now, retention_days=retention_days)
        return cls(
            people,
            preferences=preferences,
            templates=templates,
            retention_days=retention_days,
            completion_log=log,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def state(self) -> LockState | None:
        """Last published state, or None before the first evaluation."""
        return self._state

    @property
    def is_locked(self) -> bool:
        return self._state is not LockState.UNLOCKED

    def subscribe(self, observer: LockObserver) -> Callable[[], None]:
        """Register a callback for lock-state changes. Returns an unsubscribe callable."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _publish(self, state: LockState) -> None:
        if state is self._state:
            return
        previous = self._state
        self._state = state
        logger.info(
            "Lock state: %s -> %s",
            previous.value if previous else "none", state.value,
        )
        for observer in list(self._observers):
            try:
                observer(state)
            except Exception as exc:
                logger.error("Lock observer %r failed: %s", observer, exc)

    # ------------------------------------------------------------------
    # People and assignment
    # ------------------------------------------------------------------

    def person_named(self, name: str) -> Person | None:
        for person in self.people:
            if person.name == name:
                return person
        return None

    @property
    def current_person(self) -> Person | None:
        """The assigned person, or None if unassigned or the name is unknown."""
        if not self.assigned_name:
            return None
        return self.person_named(self.assigned_name)

    def assign(self, name: str | None, now: datetime) -> LockState:
        """Make `name` the device's current user (None clears it), then re-evaluate."""
        self.assigned_name = name or ""
        self._clear_override()
        if self._preferences is not None:
            try:
                if self.assigned_name:
                    self._preferences.set(ASSIGNED_PERSON_KEY, self.assigned_name)
                else:
                    self._preferences.delete(ASSIGNED_PERSON_KEY)
            except Exception as exc:
                logger.warning("Failed to persist assignment: %s", exc)
        if self.assigned_name and self.current_person is None:
            logger.warning("Assigned person '%s' is not known", self.assigned_name)
        logger.info("Device assigned to '%s'", self.assigned_name or "(nobody)")
        return self.evaluate(now)

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    @property
    def window_is_valid(self) -> bool:
        return self.start_hour < self.end_hour

    def in_window(self, now: datetime) -> bool:
        """Half-open hour check; a misconfigured window never matches."""
        return self.start_hour <= now.hour < self.end_hour

    def ensure_today_tasks_loaded(self, now: datetime) -> bool:
        return ensure_today_tasks_loaded(self.people, now, self.weekend_days)

    def decide(self, now: datetime) -> LockState:
        """Compute the lock state for `now` without publishing it."""
        self.ensure_today_tasks_loaded(now)

        if not self.in_window(now):
            return LockState.UNLOCKED

        today = start_of_day(now)
        if self._override_day == today:
            return LockState.UNLOCKED

        person = self.current_person
        if person is None:
            return LockState.LOCKED

        if person.last_completed_date is None:
            return LockState.LOCKED

        if start_of_day(person.last_completed_date) == today:
            return LockState.UNLOCKED

        # Completed on an earlier day: the mark is stale.
        logger.info(
            "Stale completion for '%s' from %s cleared",
            person.name, person.last_completed_date.isoformat(),
        )
        person.last_completed_date = None
        self.ensure_today_tasks_loaded(now)
        return LockState.LOCKED

    def evaluate(self, now: datetime) -> LockState:
        """Decide and publish the lock state for `now`."""
        state = self.decide(now)
        self._publish(state)
        return state

    def admin_unlock(self, now: datetime) -> LockState:
        """Parent override: stay unlocked for the rest of today's window.

        The override ends at midnight, or earlier when the device is
        reassigned or today's tasks are reset.
        """
        self._override_day = start_of_day(now)
        logger.info("Admin override: unlocked for %s", self._override_day.isoformat())
        self._publish(LockState.UNLOCKED)
        return LockState.UNLOCKED

    def _clear_override(self) -> None:
        if self._override_day is not None:
            logger.info("Admin override for %s cleared", self._override_day.isoformat())
            self._override_day = None

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def mark_current_person_done(self, now: datetime) -> LockState | None:
        """Record that the assigned person finished today's checklist.

        The caller is responsible for checking that every task is ticked.
        Returns the new state, or None if nobody is assigned.
        """
        person = self.current_person
        if person is None:
            logger.warning("Completion ignored: no person assigned")
            return None

        person.last_completed_date = now
        self._append_log(CompletionLogEntry(person_name=person.name, timestamp=now), now)
        logger.info("'%s' completed today's tasks at %s", person.name, now.isoformat())
        return self.evaluate(now)

    def toggle_task(self, task_id: str, now: datetime) -> bool:
        """Flip one of the assigned person's tasks; finishing the last one marks them done.

        Returns False if there is no such task for the assigned person.
        """
        person = self.current_person
        if person is None:
            return False
        task = next((t for t in person.today_tasks if t.id == task_id), None)
        if task is None:
            logger.warning("Task %s not found for '%s'", task_id, person.name)
            return False

        task.completed = not task.completed
        if person.all_tasks_completed:
            self.mark_current_person_done(now)
        else:
            self.evaluate(now)
        return True

    # ------------------------------------------------------------------
    # Completion log
    # ------------------------------------------------------------------

    def set_log_persister(self, persister: Callable[[CompletionLog], None]) -> None:
        """Replace how the log is written (GatekeeperService moves it off-loop)."""
        self._log_persister = persister

    def _persist_log_now(self, log: CompletionLog) -> None:
        if self._preferences is not None:
            log.persist(self._preferences)

    def _append_log(self, entry: CompletionLogEntry, now: datetime) -> None:
        self.completion_log.append(entry, now)
        try:
            self._log_persister(self.completion_log)
        except Exception as exc:
            logger.warning("Completion log persistence failed: %s", exc)

    def recent_log(self, limit: int = 50) -> list[CompletionLogEntry]:
        return self.completion_log.recent(limit)

    # ------------------------------------------------------------------
    # Session bookkeeping
    # ------------------------------------------------------------------

    def record_session_start(self, now: datetime) -> bool:
        """Flag the session as running; log an entry if the last one crashed.

        Returns True if the previous session ended uncleanly.
        """
        if self._preferences is None:
            return False
        was_clean = self._preferences.get_bool(CLEAN_EXIT_KEY, default=False)
        if not was_clean:
            logger.warning("Previous session did not exit cleanly")
            self._append_log(
                CompletionLogEntry(person_name=SYSTEM_UNCLEAN_EXIT_NAME, timestamp=now),
                now,
            )
        try:
            self._preferences.set_bool(CLEAN_EXIT_KEY, False)
        except Exception as exc:
            logger.warning("Failed to write session flag: %s", exc)
        return not was_clean

    def record_session_end(self) -> None:
        if self._preferences is None:
            return
        try:
            self._preferences.set_bool(CLEAN_EXIT_KEY, True)
        except Exception as exc:
            logger.warning("Failed to write session flag: %s", exc)

    # ------------------------------------------------------------------
    # Launch at login (preference only; OS registration lives in the UI)
    # ------------------------------------------------------------------

    @property
    def launch_at_login_enabled(self) -> bool:
        if self._preferences is None:
            return False
        return self._preferences.get_bool(LAUNCH_AT_LOGIN_KEY)

    def set_launch_at_login(self, enabled: bool) -> None:
        if self._preferences is None:
            return
        try:
            self._preferences.set_bool(LAUNCH_AT_LOGIN_KEY, enabled)
        except Exception as exc:
            logger.warning("Failed to store launch-at-login preference: %s", exc)

    # ------------------------------------------------------------------
    # Admin: template editing
    # ------------------------------------------------------------------

    def _require_person(self, name: str) -> Person:
        person = self.person_named(name)
        if person is None:
            raise KeyError(f"Unknown person: {name!r}")
        return person

    def _save_templates(self, person: Person) -> None:
        if self._templates is None:
            return
        try:
            self._templates.save_person(person, position=self.people.index(person))
        except Exception as exc:
            logger.warning("Failed to save templates for '%s': %s", person.name, exc)

    def add_task(
        self, person_name: str, weekend: bool, title: str = DEFAULT_NEW_TASK_TITLE,
    ) -> TaskItem:
        """Append a task to a person's weekday or weekend template."""
        person = self._require_person(person_name)
        task = TaskItem(title=title)
        person.template_for(weekend).append(task)
        self._save_templates(person)
        logger.info(
            "Added '%s' to %s's %s template",
            title, person.name, "weekend" if weekend else "weekday",
        )
        return task

    def remove_tasks(self, person_name: str, weekend: bool, indexes: Iterable[int]) -> int:
        """Remove template tasks at the given positions. Returns count removed."""
        person = self._require_person(person_name)
        template = person.template_for(weekend)
        doomed = {i for i in indexes if 0 <= i < len(template)}
        template[:] = [t for i, t in enumerate(template) if i not in doomed]
        if doomed:
            self._save_templates(person)
        return len(doomed)

    def rename_task(self, person_name: str, weekend: bool, index: int, title: str) -> bool:
        """Retitle one template task. Returns False if `index` is out of range."""
        person = self._require_person(person_name)
        template = person.template_for(weekend)
        if not 0 <= index < len(template):
            logger.warning(
                "No task %d in %s's %s template", index, person.name,
                "weekend" if weekend else "weekday",
            )
            return False
        template[index].title = title
        self._save_templates(person)
        return True

    def reset_today_from_template(
        self, person_name: str, weekend: bool, now: datetime,
    ) -> LockState:
        """Rebuild today's list from the chosen template and clear completion."""
        person = self._require_person(person_name)
        person.today_tasks = instantiate(person.template_for(weekend))
        person.last_completed_date = None
        person.last_instantiated_day = start_of_day(now)
        self._clear_override()
        logger.info(
            "Reset today's tasks for '%s' from %s template",
            person.name, "weekend" if weekend else "weekday",
        )
        return self.evaluate(now)
