"""
ChoreLock — SQLite storage.

Preferences (assignment, completion log, clean-exit flag, launch-at-login)
live in a key/value table. Per-person task templates live in their own table
so admin edits survive restarts. Reads never raise: a broken or missing
database yields the caller's default.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from chorelock.data.models import Person, TaskItem

logger = logging.getLogger(__name__)

# Preference keys
ASSIGNED_PERSON_KEY = "assigned_person_name"
COMPLETION_LOG_KEY = "completion_log"
LAUNCH_AT_LOGIN_KEY = "launch_at_login_enabled"
CLEAN_EXIT_KEY = "last_session_clean_exit"


def _resolve_db_path(db_path: str | None) -> str:
    if db_path is None:
        from chorelock.config import settings
        db_path = settings.DATABASE_PATH
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return db_path


class PreferenceDB:
    """SQLite-backed key/value store for small persisted preferences."""

    def __init__(self, db_path: str | None = None) -> None:
        self._db_path = _resolve_db_path(db_path)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS preferences (
                    key   TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
        logger.debug("Preferences table initialized at %s", self._db_path)

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the stored value, or default if absent or unreadable."""
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT value FROM preferences WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            logger.warning("Failed to read preference '%s': %s", key, exc)
            return default
        if row is None:
            return default
        return row["value"]

    def set(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO preferences (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )

    def delete(self, key: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM preferences WHERE key = ?", (key,))
        return cursor.rowcount > 0

    def get_bool(self, key: str, default: bool = False) -> bool:
        raw = self.get(key)
        if raw is None:
            return default
        return raw == "1"

    def set_bool(self, key: str, value: bool) -> None:
        self.set(key, "1" if value else "0")


class TemplateDB:
    """SQLite-backed storage for per-person weekday/weekend templates."""

    def __init__(self, db_path: str | None = None) -> None:
        self._db_path = _resolve_db_path(db_path)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS people (
                    id               TEXT PRIMARY KEY,
                    name             TEXT NOT NULL,
                    position         INTEGER NOT NULL DEFAULT 0,
                    weekday_template TEXT NOT NULL DEFAULT '[]',
                    weekend_template TEXT NOT NULL DEFAULT '[]'
                )
            """)
        logger.debug("People table initialized at %s", self._db_path)

    @staticmethod
    def _titles_to_json(tasks: list[TaskItem]) -> str:
        return json.dumps([t.title for t in tasks])

    @staticmethod
    def _json_to_tasks(raw: str) -> list[TaskItem]:
        titles = json.loads(raw)
        if not isinstance(titles, list):
            raise ValueError("template must be a JSON list")
        return [TaskItem(title=str(title)) for title in titles]

    @classmethod
    def _row_to_person(cls, row: sqlite3.Row) -> Person:
        return Person(
            id=row["id"],
            name=row["name"],
            weekday_template=cls._json_to_tasks(row["weekday_template"]),
            weekend_template=cls._json_to_tasks(row["weekend_template"]),
        )

    def load_people(self) -> list[Person] | None:
        """Return stored people in position order, or None if none are usable."""
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM people ORDER BY position, name"
                ).fetchall()
            people = [self._row_to_person(r) for r in rows]
        except (sqlite3.Error, ValueError) as exc:
            logger.warning("Stored templates unreadable, using defaults: %s", exc)
            return None
        return people or None

    def save_person(self, person: Person, position: int = 0) -> None:
        """Insert or update a person's templates."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO people
                    (id, name, position, weekday_template, weekend_template)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    position = excluded.position,
                    weekday_template = excluded.weekday_template,
                    weekend_template = excluded.weekend_template
                """,
                (
                    person.id, person.name, position,
                    self._titles_to_json(person.weekday_template),
                    self._titles_to_json(person.weekend_template),
                ),
            )
        logger.debug("Templates saved for '%s'", person.name)

    def save_people(self, people: list[Person]) -> None:
        for position, person in enumerate(people):
            self.save_person(person, position=position)
