"""Scoped pull reconciliation of mirrored collections.

A pass fetches one remote collection, normalizes it, and makes the local
rows inside the requested scope match it exactly:

1. Remote items are normalized and indexed by natural key. The first item
   for a key wins; later duplicates are ignored.
2. Inside one transaction, local rows in scope are indexed by the same key.
3. Missing keys are inserted, differing rows updated in place. Child rows
   of a collection that has them are replaced alongside.
4. Local keys left over are stale and deleted, unless the table holds
   master rows that other rows refer to; those are retained.

Any error rolls the whole pass back.
"""

import logging
import sqlite3
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterable

from ..errors import NoActiveEventError, ScopeError
from ..models import Scope
from ..normalize import extract_items, year_from_event_key
from ..store import LocalStore
from ..store.local_store import delete_rows, insert_row, select_rows, update_row

logger = logging.getLogger(__name__)

Row = dict[str, Any]
KeyFn = Callable[[Row], tuple[Any, ...]]
CompareFn = Callable[[Row, Row], bool]


@dataclass(frozen=True)
class MirrorTable:
    """A local table mirroring a remote collection."""

    name: str
    columns: tuple[str, ...]
    key_columns: tuple[str, ...]
    scope_columns: tuple[tuple[str, str], ...] = ()  # (column, Scope attribute)
    retain_stale: bool = False  # master rows other tables refer to

    def key_of(self, row: Row) -> tuple[Any, ...]:
        return tuple(row[column] for column in self.key_columns)

    def differs(self, existing: Row, incoming: Row) -> bool:
        return any(existing.get(column) != incoming[column] for column in self.columns)

    def scope_filter(self, scope: Scope) -> dict[str, Any]:
        return {column: getattr(scope, attr) for column, attr in self.scope_columns}

    def in_scope(self, row: Row, scope: Scope) -> bool:
        return all(row[column] == getattr(scope, attr) for column, attr in self.scope_columns)


@dataclass(frozen=True)
class Collection:
    """Binds a mirror table to the normalizer for its remote feed."""

    name: str
    table: MirrorTable
    normalize: Callable[[Any, Scope], Any]  # -> model, list of models, or None
    required_teams: Callable[[Row], Iterable[int]] | None = None
    requires_event_row: bool = False
    on_stale: Callable[[sqlite3.Connection, list[Row]], None] | None = None
    # Replaces child rows of one incoming row; True when they changed
    sync_children: Callable[[sqlite3.Connection, Row], bool] | None = None


@dataclass
class ReconcileCounts:
    """Outcome of one reconcile pass."""

    received: int = 0
    created: int = 0
    updated: int = 0
    removed: int = 0
    retained: int = 0

    @property
    def changed(self) -> int:
        return self.created + self.updated + self.removed

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def ensure_team_placeholders(
    conn: sqlite3.Connection, team_numbers: Iterable[int]
) -> int:
    """Insert a minimal team row for every number not yet known locally.

    Returns:
        Number of placeholders inserted.
    """
    inserted = 0
    for team_number in sorted(set(team_numbers)):
        inserted += insert_row(
            conn,
            "team",
            {"team_number": team_number, "team_name": f"Team {team_number}", "location": None},
            ignore_conflict=True,
        )
    return inserted


def ensure_event_placeholder(conn: sqlite3.Connection, event_key: str) -> int:
    year = year_from_event_key(event_key) or datetime.now().year
    return insert_row(
        conn,
        "event",
        {
            "event_key": event_key,
            "event_name": event_key,
            "short_name": None,
            "year": year,
            "week": 0,
        },
        ignore_conflict=True,
    )


class Reconciler:
    """Applies remote collections to the local store."""

    def __init__(self, store: LocalStore):
        self._store = store

    async def reconcile(
        self,
        scope: Scope,
        fetch: Callable[[], Awaitable[Any]],
        collection: Collection,
        key_fn: KeyFn | None = None,
        compare_fn: CompareFn | None = None,
    ) -> ReconcileCounts:
        """Fetch a remote collection and reconcile it into its local table.

        Args:
            scope: Scope bounding the pass.
            fetch: Coroutine function returning the raw remote body.
            collection: Table and normalizer for the collection.
            key_fn: Natural key of a row; defaults to the table key columns.
            compare_fn: True when an existing row must be updated; defaults
                to comparing every column.

        Returns:
            Counts of received, created, updated, removed and retained rows.
        """
        self.check_scope(scope, collection)

        raw = await fetch()

        with self._store.transaction() as conn:
            counts = self.apply(conn, scope, raw, collection, key_fn, compare_fn)

        logger.info(
            f"Reconciled {collection.name}: received={counts.received}, "
            f"created={counts.created}, updated={counts.updated}, "
            f"removed={counts.removed}, retained={counts.retained}"
        )
        return counts

    def check_scope(self, scope: Scope, collection: Collection) -> None:
        """Fail before any network call when the scope cannot be satisfied."""
        for _, attr in collection.table.scope_columns:
            if getattr(scope, attr) is not None:
                continue
            if attr == "event_code":
                raise NoActiveEventError()
            raise ScopeError(f"{collection.name} requires an active {attr.replace('_', ' ')}")

        if any(attr == "organization_id" for _, attr in collection.table.scope_columns):
            known = self._store.select("organization", {"id": scope.organization_id})
            if not known:
                raise ScopeError(
                    f"Organization {scope.organization_id} is not known locally; "
                    f"sync organizations first"
                )

    def normalize_batch(
        self,
        raw: Any,
        collection: Collection,
        scope: Scope,
        key_fn: KeyFn | None = None,
    ) -> dict[tuple[Any, ...], Row]:
        """Normalize a remote body into in-scope rows keyed by natural key."""
        key_fn = key_fn or collection.table.key_of
        rows: dict[tuple[Any, ...], Row] = {}
        rejected = 0
        duplicates = 0

        for item in extract_items(raw):
            result = collection.normalize(item, scope)
            if result is None:
                rejected += 1
                continue

            for model in result if isinstance(result, list) else [result]:
                row = asdict(model)
                if not collection.table.in_scope(row, scope):
                    continue

                key = key_fn(row)
                if key in rows:
                    duplicates += 1
                    continue
                rows[key] = row

        if rejected or duplicates:
            logger.debug(
                f"{collection.name}: skipped {rejected} malformed and "
                f"{duplicates} duplicate items"
            )
        return rows

    def apply(
        self,
        conn: sqlite3.Connection,
        scope: Scope,
        raw: Any,
        collection: Collection,
        key_fn: KeyFn | None = None,
        compare_fn: CompareFn | None = None,
    ) -> ReconcileCounts:
        """Reconcile an already fetched body inside the caller's transaction."""
        table = collection.table
        key_fn = key_fn or table.key_of
        compare_fn = compare_fn or table.differs

        incoming = self.normalize_batch(raw, collection, scope, key_fn)
        counts = ReconcileCounts(received=len(incoming))

        if collection.requires_event_row and scope.event_code:
            ensure_event_placeholder(conn, scope.event_code)

        if collection.required_teams is not None:
            placeholders = ensure_team_placeholders(
                conn,
                (
                    team_number
                    for row in incoming.values()
                    for team_number in collection.required_teams(row)
                ),
            )
            if placeholders:
                logger.debug(f"{collection.name}: inserted {placeholders} team placeholders")

        local = {
            key_fn(dict(row)): dict(row)
            for row in select_rows(conn, table.name, table.scope_filter(scope))
        }

        for key, row in incoming.items():
            existing = local.pop(key, None)

            if existing is None:
                insert_row(conn, table.name, {c: row[c] for c in table.columns})
                if collection.sync_children is not None:
                    collection.sync_children(conn, row)
                counts.created += 1
                continue

            changed = compare_fn(existing, row)
            if changed:
                update_row(
                    conn,
                    table.name,
                    {c: row[c] for c in table.columns if c not in table.key_columns},
                    {c: existing[c] for c in table.key_columns},
                )
            if collection.sync_children is not None and collection.sync_children(conn, row):
                changed = True
            if changed:
                counts.updated += 1

        stale = list(local.values())
        if stale:
            if table.retain_stale:
                counts.retained = len(stale)
            else:
                for row in stale:
                    delete_rows(conn, table.name, {c: row[c] for c in table.key_columns})
                counts.removed = len(stale)

            if collection.on_stale is not None:
                collection.on_stale(conn, stale)

        return counts
