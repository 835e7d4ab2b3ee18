"""SQLite-backed agent state: consent flag, frequency overrides, cadence timestamps."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, Optional, Protocol

from .events import DEFAULT_FREQUENCIES, EventKind
from .logging import AgentLogger
from .models import SamplingFrequency
from .utils import ensure_parent_dir, parse_iso8601

_CONSENT_KEY = "consent"


class AgentStore(Protocol):
    """Persistent state the scheduler reads and writes."""

    def get_consent(self) -> bool: ...

    def set_consent(self, opted_in: bool) -> None: ...

    def get_frequency_map(self) -> Dict[EventKind, SamplingFrequency]: ...

    def set_frequency(self, kind: EventKind, frequency: SamplingFrequency) -> None: ...

    def get_cadence_timestamp(self, cadence: SamplingFrequency) -> Optional[datetime]: ...

    def set_cadence_timestamp(self, cadence: SamplingFrequency, timestamp: datetime) -> None: ...


class SqliteAgentStore:
    """
    AgentStore on a local SQLite file.

    Every write runs in its own transaction with ``synchronous=FULL``, so a
    cadence timestamp is on disk before ``set_cadence_timestamp`` returns.
    """

    def __init__(
        self,
        db_path: Path,
        timeout: float = 5.0,
        logger: Optional[AgentLogger] = None,
    ):
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.logger = logger
        self._init_db()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
        try:
            conn.execute("PRAGMA synchronous=FULL")
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        ensure_parent_dir(self.db_path)
        with self._connection() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS event_frequencies (
                    kind TEXT PRIMARY KEY,
                    frequency TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS cadence_state (
                    cadence TEXT PRIMARY KEY,
                    last_success TEXT NOT NULL
                );
                """
            )

    def get_consent(self) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT value FROM settings WHERE key = ?", (_CONSENT_KEY,)
            ).fetchone()
        return bool(row) and row[0] == "1"

    def set_consent(self, opted_in: bool) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (_CONSENT_KEY, "1" if opted_in else "0"),
            )

    def get_frequency_map(self) -> Dict[EventKind, SamplingFrequency]:
        frequencies = dict(DEFAULT_FREQUENCIES)
        with self._connection() as conn:
            rows = conn.execute("SELECT kind, frequency FROM event_frequencies").fetchall()
        for kind_value, frequency_value in rows:
            try:
                frequencies[EventKind(kind_value)] = SamplingFrequency(frequency_value)
            except ValueError:
                # Rows written by an older schema version.
                if self.logger:
                    self.logger.warning(
                        "Ignoring stored frequency",
                        kind=kind_value,
                        frequency=frequency_value,
                    )
        return frequencies

    def set_frequency(self, kind: EventKind, frequency: SamplingFrequency) -> None:
        with self._connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO event_frequencies (kind, frequency) VALUES (?, ?)",
                (EventKind(kind).value, SamplingFrequency(frequency).value),
            )

    def reset_frequency(self, kind: EventKind) -> None:
        with self._connection() as conn:
            conn.execute("DELETE FROM event_frequencies WHERE kind = ?", (EventKind(kind).value,))

    def get_cadence_timestamp(self, cadence: SamplingFrequency) -> Optional[datetime]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT last_success FROM cadence_state WHERE cadence = ?",
                (SamplingFrequency(cadence).value,),
            ).fetchone()
        return parse_iso8601(row[0]) if row else None

    def set_cadence_timestamp(self, cadence: SamplingFrequency, timestamp: datetime) -> None:
        cadence = SamplingFrequency(cadence)
        if cadence.is_immediate:
            raise ValueError(f"{cadence.value} cadence has no persisted state")
        if timestamp.tzinfo is None:
            raise ValueError("cadence timestamps must be timezone-aware")
        with self._connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO cadence_state (cadence, last_success) VALUES (?, ?)",
                (cadence.value, timestamp.astimezone(timezone.utc).isoformat()),
            )
