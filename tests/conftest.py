"""Shared test fixtures and configuration.

Sets up environment variables before chorelock.config is imported,
and provides temp-file stores, people and an engine.
"""

import os

# Patch env vars BEFORE any chorelock imports
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("SCREEN_BACKEND", "log")

from datetime import datetime

import pytest

# Friday and Saturday of the same week
FRIDAY = datetime(2026, 10, 16, 7, 0)
SATURDAY = datetime(2026, 10, 17, 7, 0)


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_chorelock.db")


@pytest.fixture
def preference_db(tmp_db_path):
    from chorelock.data.db import PreferenceDB
    return PreferenceDB(db_path=tmp_db_path)


@pytest.fixture
def template_db(tmp_db_path):
    from chorelock.data.db import TemplateDB
    return TemplateDB(db_path=tmp_db_path)


@pytest.fixture
def micah():
    """Micah with two weekday tasks and a distinct weekend list."""
    from chorelock.data.models import Person, TaskItem
    return Person(
        name="Micah",
        weekday_template=[TaskItem("Brush Teeth"), TaskItem("Change Clothes")],
        weekend_template=[TaskItem("Brush Teeth"), TaskItem("Tidy Room")],
    )


@pytest.fixture
def engine(micah):
    """In-memory engine with a 06:00-09:00 window and no stores."""
    from chorelock.core.lock_engine import GatekeeperEngine
    return GatekeeperEngine([micah], start_hour=6, end_hour=9)


@pytest.fixture
def stored_engine(micah, preference_db, template_db):
    """Engine backed by temp-file stores."""
    from chorelock.core.lock_engine import GatekeeperEngine
    template_db.save_people([micah])
    return GatekeeperEngine(
        [micah],
        preferences=preference_db,
        templates=template_db,
        start_hour=6,
        end_hour=9,
    )
