"""Completion log — newest-first audit trail of finished checklists.

Entries older than the retention window are pruned after every append and
once after loading. The log round-trips through a JSON array stored under a
single preference key; missing or corrupt data loads as an empty log.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from chorelock.data.db import COMPLETION_LOG_KEY
from chorelock.data.models import CompletionLogEntry

if TYPE_CHECKING:
    from chorelock.data.db import PreferenceDB

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 14


class CompletionLog:
    """In-memory completion history with time-based retention."""

    def __init__(
        self,
        entries: list[CompletionLogEntry] | None = None,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ) -> None:
        self._entries: list[CompletionLogEntry] = list(entries or [])
        self.retention_days = retention_days

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[CompletionLogEntry]:
        """A copy of the entries, newest first."""
        return list(self._entries)

    def recent(self, limit: int = 50) -> list[CompletionLogEntry]:
        return self._entries[:limit]

    def append(self, entry: CompletionLogEntry, now: datetime) -> None:
        """Insert at the head, then prune."""
        self._entries.insert(0, entry)
        self.prune(now)

    def prune(self, now: datetime) -> int:
        """Drop entries older than the retention window. Returns count removed."""
        cutoff = now - timedelta(days=self.retention_days)
        kept = [e for e in self._entries if e.timestamp >= cutoff]
        removed = len(self._entries) - len(kept)
        self._entries = kept
        if removed:
            logger.info("Pruned %d completion log entries older than %s", removed, cutoff)
        return removed

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_json(self) -> str:
        return json.dumps([
            {
                "id": e.id,
                "person_name": e.person_name,
                "timestamp": e.timestamp.isoformat(),
            }
            for e in self._entries
        ])

    @classmethod
    def from_json(
        cls, raw: str | None, retention_days: int = DEFAULT_RETENTION_DAYS,
    ) -> CompletionLog:
        """Decode a stored log; anything unreadable yields an empty log."""
        if not raw:
            return cls(retention_days=retention_days)
        try:
            items = json.loads(raw)
            if not isinstance(items, list):
                raise ValueError("completion log must be a JSON list")
            entries = []
            for item in items:
                timestamp = datetime.fromisoformat(item["timestamp"])
                if timestamp.tzinfo is not None:
                    raise ValueError(f"timestamp {item['timestamp']!r} is not local time")
                entries.append(CompletionLogEntry(
                    id=str(item["id"]),
                    person_name=str(item["person_name"]),
                    timestamp=timestamp,
                ))
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning("Stored completion log is corrupt, starting empty: %s", exc)
            return cls(retention_days=retention_days)
        return cls(entries, retention_days=retention_days)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def persist(self, store: PreferenceDB) -> None:
        """Best-effort write; failures are logged, never raised."""
        try:
            store.set(COMPLETION_LOG_KEY, self.to_json())
        except Exception as exc:
            logger.warning("Failed to persist completion log: %s", exc)

    @classmethod
    def load(
        cls,
        store: PreferenceDB,
        now: datetime,
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ) -> CompletionLog:
        """Read the stored log and prune it to the retention window."""
        try:
            raw = store.get(COMPLETION_LOG_KEY)
        except Exception as exc:
            logger.warning("Failed to read completion log: %s", exc)
            raw = None
        log = cls.from_json(raw, retention_days=retention_days)
        log.prune(now)
        return log
