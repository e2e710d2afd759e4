"""
ChoreLock — Data Models.

Plain dataclasses for people, their task checklists, and the completion log.
Templates and today's working list share TaskItem; templates ignore `completed`.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class TaskItem:
    """One checklist task (template definition or today's instance)."""

    title: str
    completed: bool = False
    id: str = field(default_factory=_new_id)

    def fresh_copy(self) -> TaskItem:
        """Return an incomplete instance with the same title and a new id."""
        return TaskItem(title=self.title)


@dataclass
class Person:
    """A managed user of the device.

    The name is the external correlation key: assignment and log entries
    refer to people by name.
    """

    name: str
    weekday_template: list[TaskItem] = field(default_factory=list)
    weekend_template: list[TaskItem] = field(default_factory=list)
    today_tasks: list[TaskItem] = field(default_factory=list)
    last_completed_date: datetime | None = None   # None = not completed today
    last_instantiated_day: date | None = None     # day today_tasks was built for
    id: str = field(default_factory=_new_id)

    def template_for(self, weekend: bool) -> list[TaskItem]:
        return self.weekend_template if weekend else self.weekday_template

    @property
    def all_tasks_completed(self) -> bool:
        return bool(self.today_tasks) and all(t.completed for t in self.today_tasks)


@dataclass
class CompletionLogEntry:
    """A single completion event, newest-first in the log."""

    person_name: str
    timestamp: datetime
    id: str = field(default_factory=_new_id)


SYSTEM_UNCLEAN_EXIT_NAME = "System (previous session ended unexpectedly)"


def default_people() -> list[Person]:
    """Built-in people used on first run, before any templates are stored."""
    micah = [TaskItem("Brush Teeth"), TaskItem("Change Clothes")]
    aidan = [
        TaskItem("Brush Teeth"),
        TaskItem("Feed the Cats"),
        TaskItem("Change Clothes"),
    ]
    # Weekend templates start as copies of the weekday ones; editable by admin.
    return [
        Person(
            name="Micah",
            weekday_template=micah,
            weekend_template=[t.fresh_copy() for t in micah],
        ),
        Person(
            name="Aidan",
            weekday_template=aidan,
            weekend_template=[t.fresh_copy() for t in aidan],
        ),
    ]
