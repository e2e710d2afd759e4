"""Daily task instantiation — pure business logic.

Derives each person's checklist for today from the weekday or weekend
template, rebuilding it on date rollover or when the template no longer
matches what was instantiated.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime

from chorelock.data.models import Person, TaskItem

logger = logging.getLogger(__name__)

DEFAULT_WEEKEND_DAYS = frozenset({5, 6})  # Saturday, Sunday


def is_weekend(moment: datetime | date, weekend_days: Iterable[int] = DEFAULT_WEEKEND_DAYS) -> bool:
    """Check whether a date falls on a configured weekend day (Monday=0)."""
    return moment.weekday() in set(weekend_days)


def start_of_day(moment: datetime) -> date:
    return moment.date()


def instantiate(template: list[TaskItem]) -> list[TaskItem]:
    """Clone a template into fresh, incomplete task instances."""
    return [task.fresh_copy() for task in template]


def titles_match(tasks: list[TaskItem], template: list[TaskItem]) -> bool:
    """Compare two task lists by ordered titles, ignoring completion."""
    return [t.title for t in tasks] == [t.title for t in template]


def ensure_today_tasks_loaded(
    people: Iterable[Person],
    now: datetime,
    weekend_days: Iterable[int] = DEFAULT_WEEKEND_DAYS,
) -> bool:
    """Make every person's today_tasks reflect today's date and day-type.

    - New day: rebuild from the matching template and clear
      last_completed_date.
    - Same day but titles diverge from the matching template (admin edit, or
      day-type changed): rebuild, dropping task progress.
    - Otherwise leave the list alone so progress is kept.

    Returns True if any person's list was rebuilt.
    """
    today = start_of_day(now)
    weekend = is_weekend(now, weekend_days)
    changed = False

    for person in people:
        template = person.template_for(weekend)
        if person.last_instantiated_day != today:
            person.today_tasks = instantiate(template)
            person.last_instantiated_day = today
            person.last_completed_date = None
            changed = True
            logger.info(
                "Loaded %s tasks for '%s' on %s (%d tasks)",
                "weekend" if weekend else "weekday",
                person.name, today.isoformat(), len(template),
            )
        elif not titles_match(person.today_tasks, template):
            person.today_tasks = instantiate(template)
            changed = True
            logger.info("Template changed for '%s', reloaded today's tasks", person.name)

    return changed
