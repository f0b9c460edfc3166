"""Local SQLite storage for mirrored collections and the outbox."""

import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Iterator, Sequence

from ..models import (
    MatchRecord,
    PitRecord,
    PrescoutRecord,
    RobotPhoto,
    SuperScoutRecord,
)
from .schema import JSON_DATA_TABLES, OUTBOX_TABLES, SCHEMA

logger = logging.getLogger(__name__)

ACTIVE_CONTEXT_ID = 1

MATCH_KEY = ("event_key", "team_number", "match_level", "match_number")
PIT_KEY = ("event_key", "team_number")
ROBOT_PHOTO_KEY = ("event_key", "team_number", "local_uri")


def _where(key: dict[str, Any]) -> tuple[str, list[Any]]:
    clause = " AND ".join(f"{column} = ?" for column in key)
    return clause, list(key.values())


def select_rows(
    conn: sqlite3.Connection,
    table: str,
    where: dict[str, Any] | None = None,
) -> list[sqlite3.Row]:
    """Select every row of ``table`` matching the equality filter."""
    if where:
        clause, params = _where(where)
        return conn.execute(f"SELECT * FROM {table} WHERE {clause}", params).fetchall()
    return conn.execute(f"SELECT * FROM {table}").fetchall()


def insert_row(
    conn: sqlite3.Connection,
    table: str,
    values: dict[str, Any],
    ignore_conflict: bool = False,
) -> int:
    """Insert one row. Returns the number of rows written (0 on ignored conflict)."""
    columns = ", ".join(values)
    placeholders = ", ".join("?" * len(values))
    verb = "INSERT OR IGNORE" if ignore_conflict else "INSERT"
    cursor = conn.execute(
        f"{verb} INTO {table} ({columns}) VALUES ({placeholders})",
        list(values.values()),
    )
    return cursor.rowcount


def update_row(
    conn: sqlite3.Connection,
    table: str,
    values: dict[str, Any],
    key: dict[str, Any],
) -> int:
    assignments = ", ".join(f"{column} = ?" for column in values)
    clause, params = _where(key)
    cursor = conn.execute(
        f"UPDATE {table} SET {assignments} WHERE {clause}",
        [*values.values(), *params],
    )
    return cursor.rowcount


def delete_rows(conn: sqlite3.Connection, table: str, key: dict[str, Any]) -> int:
    clause, params = _where(key)
    cursor = conn.execute(f"DELETE FROM {table} WHERE {clause}", params)
    return cursor.rowcount


class LocalStore:
    """SQLite-backed local mirror and outbox."""

    def __init__(self, db_path: str | Path):
        """Initialize the local store.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Initialize database connection and schema."""
        if self._conn is not None:
            return

        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")

        self._conn.executescript(SCHEMA)
        self._conn.commit()

        logger.info(f"LocalStore connected to {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.info("LocalStore connection closed")

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure we have a database connection."""
        if self._conn is None:
            self.connect()
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block as one unit: commit on success, roll back on any error."""
        conn = self._ensure_connected()
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        else:
            conn.commit()

    def select(self, table: str, where: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Read rows as plain dicts."""
        conn = self._ensure_connected()
        return [dict(row) for row in select_rows(conn, table, where)]

    # ==================== Outbox Writes ====================

    def _upsert_pending(
        self,
        conn: sqlite3.Connection,
        table: str,
        key_columns: Sequence[str],
        values: dict[str, Any],
    ) -> None:
        values = {**values, "pending": 1, "updated_at": datetime.now().isoformat()}
        columns = ", ".join(values)
        placeholders = ", ".join("?" * len(values))
        updates = ", ".join(
            f"{column} = excluded.{column}" for column in values if column not in key_columns
        )
        conn.execute(
            f"""
            INSERT INTO {table} ({columns}) VALUES ({placeholders})
            ON CONFLICT({", ".join(key_columns)}) DO UPDATE SET {updates}
            """,
            list(values.values()),
        )

    def record_match(self, record: MatchRecord) -> None:
        """Save a match scouting record and queue it for submission."""
        values = asdict(record)
        values["data"] = json.dumps(record.data)
        with self.transaction() as conn:
            self._upsert_pending(conn, "match_record", MATCH_KEY, values)
        logger.debug(
            f"Queued match record {record.event_key} {record.match_level}"
            f"{record.match_number} team {record.team_number}"
        )

    def record_pit(self, record: PitRecord) -> None:
        """Save a pit scouting record and queue it for submission."""
        values = asdict(record)
        values["data"] = json.dumps(record.data)
        with self.transaction() as conn:
            self._upsert_pending(conn, "pit_record", PIT_KEY, values)
        logger.debug(f"Queued pit record {record.event_key} team {record.team_number}")

    def record_prescout(self, record: PrescoutRecord) -> None:
        values = asdict(record)
        values["data"] = json.dumps(record.data)
        with self.transaction() as conn:
            self._upsert_pending(conn, "prescout_record", MATCH_KEY, values)

    def record_super_scout(self, record: SuperScoutRecord) -> None:
        """Save a super scouting record together with its tag selections.

        The selection set replaces whatever was stored for the same match
        and team.
        """
        values = asdict(record)
        selections = sorted(values.pop("selections"))
        key = {column: values[column] for column in MATCH_KEY}

        with self.transaction() as conn:
            self._upsert_pending(conn, "super_scout_record", MATCH_KEY, values)
            delete_rows(conn, "super_scout_selection", key)
            for field_key in selections:
                insert_row(
                    conn,
                    "super_scout_selection",
                    {**key, "field_key": field_key},
                )

    def record_robot_photo(self, photo: RobotPhoto) -> int:
        """Save a captured robot photo and queue it for upload.

        Returns:
            Row ID of the photo.
        """
        with self.transaction() as conn:
            self._upsert_pending(conn, "robot_photo", ROBOT_PHOTO_KEY, asdict(photo))
            row = conn.execute(
                """
                SELECT id FROM robot_photo
                WHERE event_key = ? AND team_number = ? AND local_uri = ?
                """,
                (photo.event_key, photo.team_number, photo.local_uri),
            ).fetchone()
        return row["id"]

    # ==================== Outbox Reads ====================

    def get_pending(self, table: str, event_key: str) -> list[dict[str, Any]]:
        """Get rows of an outbox table still awaiting submission.

        Args:
            table: Outbox table name.
            event_key: Event the rows belong to.

        Returns:
            Rows as dicts, JSON ``data`` decoded, in insertion order.
        """
        conn = self._ensure_connected()
        cursor = conn.execute(
            f"SELECT * FROM {table} WHERE event_key = ? AND pending = 1 ORDER BY rowid",
            (event_key,),
        )

        rows = []
        for row in cursor:
            record = dict(row)
            if table in JSON_DATA_TABLES:
                record["data"] = json.loads(record["data"] or "{}")
            rows.append(record)
        return rows

    def mark_submitted(
        self,
        table: str,
        key_columns: Sequence[str],
        submitted: Iterable[tuple[dict[str, Any], dict[str, Any]]],
    ) -> list[dict[str, Any]]:
        """Clear the pending flag of delivered rows in one transaction.

        Args:
            table: Outbox table name.
            key_columns: Natural key columns of the table.
            submitted: ``(row, extra_values)`` pairs; ``row`` is the row as it
                was read for submission. A row edited since then keeps its
                flag, because its ``updated_at`` no longer matches.

        Returns:
            The given rows whose flag was cleared, in order.
        """
        cleared = []
        with self.transaction() as conn:
            for row, extra in submitted:
                key = {column: row[column] for column in key_columns}
                key["updated_at"] = row["updated_at"]
                key["pending"] = 1
                if update_row(conn, table, {**extra, "pending": 0}, key):
                    cleared.append(row)

        if cleared:
            logger.debug(f"Cleared pending flag on {len(cleared)} {table} rows")
        return cleared

    def get_super_scout_selections(
        self, event_key: str
    ) -> dict[tuple[Any, ...], set[str]]:
        """Map each super-scout record key to its selected field keys."""
        conn = self._ensure_connected()
        selections: dict[tuple[Any, ...], set[str]] = {}
        for row in select_rows(conn, "super_scout_selection", {"event_key": event_key}):
            key = tuple(row[column] for column in MATCH_KEY)
            selections.setdefault(key, set()).add(row["field_key"])
        return selections

    def get_super_scout_field_keys(self) -> list[str]:
        """Current super-scout vocabulary keys, in the order they were received."""
        conn = self._ensure_connected()
        rows = conn.execute("SELECT key FROM super_scout_field ORDER BY rowid").fetchall()
        return [row["key"] for row in rows]

    def count_pending(self, event_key: str | None = None) -> dict[str, int]:
        """Count pending rows per outbox channel."""
        conn = self._ensure_connected()
        counts = {}
        for channel, table in OUTBOX_TABLES.items():
            if event_key is None:
                cursor = conn.execute(f"SELECT COUNT(*) FROM {table} WHERE pending = 1")
            else:
                cursor = conn.execute(
                    f"SELECT COUNT(*) FROM {table} WHERE pending = 1 AND event_key = ?",
                    (event_key,),
                )
            counts[channel] = cursor.fetchone()[0]
        return counts

    # ==================== Active Context ====================

    def load_active_context(self) -> tuple[int | None, str | None]:
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT organization_id, event_code FROM active_context WHERE id = ?",
            (ACTIVE_CONTEXT_ID,),
        ).fetchone()
        if row is None:
            return None, None
        return row["organization_id"], row["event_code"]

    def save_active_context(
        self, organization_id: int | None, event_code: str | None
    ) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                INSERT INTO active_context (id, organization_id, event_code)
                VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    organization_id = excluded.organization_id,
                    event_code = excluded.event_code
                """,
                (ACTIVE_CONTEXT_ID, organization_id, event_code),
            )

    def delete_active_context(self) -> None:
        with self.transaction() as conn:
            conn.execute("DELETE FROM active_context WHERE id = ?", (ACTIVE_CONTEXT_ID,))

    # ==================== Stats ====================

    def get_stats(self) -> dict[str, Any]:
        """Get storage statistics.

        Returns:
            Dictionary with row counts per table, pending counts and size.
        """
        conn = self._ensure_connected()

        tables = [
            row["name"]
            for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' "
                "AND name NOT LIKE 'sqlite_%' ORDER BY name"
            )
        ]

        stats: dict[str, Any] = {
            "row_counts": {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in tables
            },
            "pending": self.count_pending(),
        }

        if str(self.db_path) != ":memory:" and self.db_path.exists():
            stats["db_size_mb"] = round(self.db_path.stat().st_size / (1024 * 1024), 2)

        return stats
