"""Pull passes for every mirrored collection."""

import logging
import sqlite3
from typing import Any

from ..models import Scope
from ..normalize import (
    extract_items,
    has_more_pages,
    normalize_already_pit_scouted,
    normalize_already_prescouted,
    normalize_already_scouted,
    normalize_already_super_scouted,
    normalize_event,
    normalize_event_images,
    normalize_match_schedule,
    normalize_pick_list,
    normalize_super_scout_field,
    normalize_team,
    normalize_team_event,
    normalize_user_organization,
)
from ..remote import ScoutingApi
from ..store import LocalStore
from ..store.local_store import insert_row
from .reconciler import Collection, MirrorTable, ReconcileCounts, Reconciler

logger = logging.getLogger(__name__)

_EVENT_SCOPE = (("event_key", "event_code"),)
_MARKER_EVENT_SCOPE = (("event_code", "event_code"),)
_ORGANIZATION_SCOPE = (("event_code", "event_code"), ("organization_id", "organization_id"))
_OWNER_SCOPE = (("organization_id", "organization_id"),)


# ==================== Tables ====================

TEAM_TABLE = MirrorTable(
    name="team",
    columns=("team_number", "team_name", "location"),
    key_columns=("team_number",),
    retain_stale=True,
)

EVENT_TABLE = MirrorTable(
    name="event",
    columns=("event_key", "event_name", "short_name", "year", "week"),
    key_columns=("event_key",),
    retain_stale=True,
)

ORGANIZATION_TABLE = MirrorTable(
    name="organization",
    columns=("id", "name", "team_number"),
    key_columns=("id",),
    retain_stale=True,
)

USER_ORGANIZATION_TABLE = MirrorTable(
    name="user_organization",
    columns=("organization_id", "user_organization_id", "role"),
    key_columns=("organization_id",),
)

SUPER_SCOUT_FIELD_TABLE = MirrorTable(
    name="super_scout_field",
    columns=("key", "label"),
    key_columns=("key",),
)

MATCH_SCHEDULE_TABLE = MirrorTable(
    name="match_schedule",
    columns=(
        "event_key",
        "match_level",
        "match_number",
        "red1_id",
        "red2_id",
        "red3_id",
        "blue1_id",
        "blue2_id",
        "blue3_id",
    ),
    key_columns=("event_key", "match_level", "match_number"),
    scope_columns=_EVENT_SCOPE,
)

TEAM_EVENT_TABLE = MirrorTable(
    name="team_event",
    columns=("event_key", "team_number"),
    key_columns=("event_key", "team_number"),
    scope_columns=_EVENT_SCOPE,
)

ALREADY_SCOUTED_TABLE = MirrorTable(
    name="already_scouted",
    columns=("event_code", "organization_id", "team_number", "match_level", "match_number"),
    key_columns=("event_code", "organization_id", "team_number", "match_level", "match_number"),
    scope_columns=_ORGANIZATION_SCOPE,
)

ALREADY_PIT_SCOUTED_TABLE = MirrorTable(
    name="already_pit_scouted",
    columns=("event_code", "organization_id", "team_number"),
    key_columns=("event_code", "organization_id", "team_number"),
    scope_columns=_ORGANIZATION_SCOPE,
)

ALREADY_PRESCOUTED_TABLE = MirrorTable(
    name="already_prescouted",
    columns=("event_key", "team_number", "match_level", "match_number"),
    key_columns=("event_key", "team_number", "match_level", "match_number"),
    scope_columns=_EVENT_SCOPE,
)

ALREADY_SUPER_SCOUTED_TABLE = MirrorTable(
    name="already_super_scouted",
    columns=("event_code", "match_level", "match_number", "alliance"),
    key_columns=("event_code", "match_level", "match_number", "alliance"),
    scope_columns=_MARKER_EVENT_SCOPE,
)

ALREADY_ROBOT_PHOTO_TABLE = MirrorTable(
    name="already_robot_photo",
    columns=("event_key", "team_number", "image_id", "image_url", "description"),
    key_columns=("event_key", "team_number", "image_id"),
    scope_columns=_EVENT_SCOPE,
)

PICK_LIST_TABLE = MirrorTable(
    name="pick_list",
    columns=(
        "id",
        "organization_id",
        "title",
        "season",
        "event_key",
        "notes",
        "created_at",
        "updated_at",
        "favorited",
    ),
    key_columns=("id",),
    scope_columns=_OWNER_SCOPE,
)


# ==================== Collections ====================


def _single_team(row: dict[str, Any]) -> tuple[int]:
    return (row["team_number"],)


def _drop_selections_for_removed_fields(
    conn: sqlite3.Connection, stale: list[dict[str, Any]]
) -> None:
    keys = [row["key"] for row in stale]
    placeholders = ", ".join("?" * len(keys))
    cursor = conn.execute(
        f"DELETE FROM super_scout_selection WHERE field_key IN ({placeholders})",
        keys,
    )
    if cursor.rowcount:
        logger.info(f"Dropped {cursor.rowcount} selections of removed super scout fields")


def _replace_pick_list_ranks(conn: sqlite3.Connection, row: dict[str, Any]) -> bool:
    """Make the stored ranks of one pick list match ``row["ranks"]``."""
    ranks = [
        (rank["rank"], rank["team_number"], rank["notes"], int(rank["dnp"]))
        for rank in row["ranks"]
    ]
    existing = conn.execute(
        "SELECT rank, team_number, notes, dnp FROM pick_list_rank "
        "WHERE pick_list_id = ? ORDER BY rank",
        (row["id"],),
    ).fetchall()
    if [tuple(stored) for stored in existing] == ranks:
        return False

    conn.execute("DELETE FROM pick_list_rank WHERE pick_list_id = ?", (row["id"],))
    for rank, team_number, notes, dnp in ranks:
        insert_row(
            conn,
            "pick_list_rank",
            {
                "pick_list_id": row["id"],
                "rank": rank,
                "team_number": team_number,
                "notes": notes,
                "dnp": dnp,
            },
        )
    return True


TEAMS = Collection("teams", TEAM_TABLE, lambda item, scope: normalize_team(item))

EVENTS = Collection("events", EVENT_TABLE, lambda item, scope: normalize_event(item))


def _organization_of(item: Any, scope: Scope):
    normalized = normalize_user_organization(item)
    return normalized[0] if normalized else None


def _membership_of(item: Any, scope: Scope):
    normalized = normalize_user_organization(item)
    return normalized[1] if normalized else None


ORGANIZATIONS = Collection("organizations", ORGANIZATION_TABLE, _organization_of)

MEMBERSHIPS = Collection("memberships", USER_ORGANIZATION_TABLE, _membership_of)

SUPER_SCOUT_FIELDS = Collection(
    "super_scout_fields",
    SUPER_SCOUT_FIELD_TABLE,
    lambda item, scope: normalize_super_scout_field(item),
    on_stale=_drop_selections_for_removed_fields,
)

MATCH_SCHEDULE = Collection(
    "match_schedule",
    MATCH_SCHEDULE_TABLE,
    lambda item, scope: normalize_match_schedule(item, scope.event_code),
    required_teams=lambda row: (
        row["red1_id"],
        row["red2_id"],
        row["red3_id"],
        row["blue1_id"],
        row["blue2_id"],
        row["blue3_id"],
    ),
    requires_event_row=True,
)

TEAM_EVENTS = Collection(
    "team_events",
    TEAM_EVENT_TABLE,
    lambda item, scope: normalize_team_event(item, scope.event_code),
    required_teams=_single_team,
    requires_event_row=True,
)

ALREADY_SCOUTED = Collection(
    "already_scouted",
    ALREADY_SCOUTED_TABLE,
    lambda item, scope: normalize_already_scouted(item),
    required_teams=_single_team,
)

ALREADY_PIT_SCOUTED = Collection(
    "already_pit_scouted",
    ALREADY_PIT_SCOUTED_TABLE,
    lambda item, scope: normalize_already_pit_scouted(item),
    required_teams=_single_team,
)

ALREADY_PRESCOUTED = Collection(
    "already_prescouted",
    ALREADY_PRESCOUTED_TABLE,
    lambda item, scope: normalize_already_prescouted(item),
    required_teams=_single_team,
)

ALREADY_SUPER_SCOUTED = Collection(
    "already_super_scouted",
    ALREADY_SUPER_SCOUTED_TABLE,
    lambda item, scope: normalize_already_super_scouted(item),
)

ALREADY_ROBOT_PHOTOS = Collection(
    "already_robot_photos",
    ALREADY_ROBOT_PHOTO_TABLE,
    lambda item, scope: normalize_event_images(item, scope.event_code),
    required_teams=_single_team,
)

# Ranks go with their list: replaced on every pull, cascaded on delete
PICK_LISTS = Collection(
    "pick_lists",
    PICK_LIST_TABLE,
    lambda item, scope: normalize_pick_list(item, scope.organization_id),
    required_teams=lambda row: [rank["team_number"] for rank in row["ranks"]],
    sync_children=_replace_pick_list_ranks,
)


class CollectionSync:
    """Runs the pull pass of each mirrored collection against the remote."""

    def __init__(
        self,
        store: LocalStore,
        api: ScoutingApi,
        reconciler: Reconciler | None = None,
        max_team_pages: int = 200,
    ):
        """Initialize collection sync.

        Args:
            store: Local store to reconcile into.
            api: Remote endpoint gateway.
            reconciler: Reconciler to use; one is created when omitted.
            max_team_pages: Upper bound on team list pages fetched per pass.
        """
        self._store = store
        self._api = api
        self._reconciler = reconciler or Reconciler(store)
        self.max_team_pages = max_team_pages

    # ==================== General data ====================

    async def _fetch_all_teams(self) -> list[Any]:
        items: list[Any] = []
        page = 1

        while page <= self.max_team_pages:
            response = await self._api.fetch_teams(page)
            received = extract_items(response)

            if not received:
                break

            items.extend(received)

            if not has_more_pages(response, page, received):
                break
            page += 1

        logger.debug(f"Fetched {len(items)} teams")
        return items

    async def pull_teams(self) -> ReconcileCounts:
        """Mirror the global team list. Teams are never deleted."""
        return await self._reconciler.reconcile(Scope(), self._fetch_all_teams, TEAMS)

    async def pull_events(self, year: int) -> ReconcileCounts:
        """Mirror the event list of one season. Events are never deleted."""
        return await self._reconciler.reconcile(
            Scope(), lambda: self._api.fetch_events(year), EVENTS
        )

    async def pull_organizations(self) -> dict[str, ReconcileCounts]:
        """Mirror the user's organizations and memberships in one transaction.

        Organizations missing from the remote list are retained because
        markers and other rows refer to them; only the user's membership
        rows for them are removed.
        """
        raw = await self._api.fetch_user_organizations()

        with self._store.transaction() as conn:
            organizations = self._reconciler.apply(conn, Scope(), raw, ORGANIZATIONS)
            memberships = self._reconciler.apply(conn, Scope(), raw, MEMBERSHIPS)

        logger.info(
            f"Reconciled organizations: received={organizations.received}, "
            f"created={organizations.created}, retained={organizations.retained}; "
            f"memberships removed={memberships.removed}"
        )
        return {"organizations": organizations, "memberships": memberships}

    async def pull_super_scout_fields(self) -> ReconcileCounts:
        """Mirror the super-scout tag vocabulary.

        Removing a field also removes every stored selection of it.
        """
        return await self._reconciler.reconcile(
            Scope(), self._api.fetch_super_scout_fields, SUPER_SCOUT_FIELDS
        )

    # ==================== Event data ====================

    async def pull_match_schedule(self, scope: Scope) -> ReconcileCounts:
        return await self._reconciler.reconcile(
            scope,
            lambda: self._api.fetch_match_schedule(scope.event_code),
            MATCH_SCHEDULE,
        )

    async def pull_team_events(self, scope: Scope) -> ReconcileCounts:
        return await self._reconciler.reconcile(
            scope,
            lambda: self._api.fetch_event_teams(scope.event_code),
            TEAM_EVENTS,
        )

    async def pull_already_scouted(self, scope: Scope) -> ReconcileCounts:
        return await self._reconciler.reconcile(
            scope, self._api.fetch_already_scouted, ALREADY_SCOUTED
        )

    async def pull_already_pit_scouted(self, scope: Scope) -> ReconcileCounts:
        return await self._reconciler.reconcile(
            scope, self._api.fetch_already_pit_scouted, ALREADY_PIT_SCOUTED
        )

    async def pull_already_prescouted(self, scope: Scope) -> ReconcileCounts:
        return await self._reconciler.reconcile(
            scope, self._api.fetch_already_prescouted, ALREADY_PRESCOUTED
        )

    async def pull_already_super_scouted(self, scope: Scope) -> ReconcileCounts:
        return await self._reconciler.reconcile(
            scope, self._api.fetch_already_super_scouted, ALREADY_SUPER_SCOUTED
        )

    async def pull_already_robot_photos(self, scope: Scope) -> ReconcileCounts:
        return await self._reconciler.reconcile(
            scope, self._api.fetch_event_images, ALREADY_ROBOT_PHOTOS
        )

    # ==================== Organization data ====================

    async def pull_pick_lists(self, scope: Scope) -> ReconcileCounts:
        """Mirror the pick lists of the scope's organization with their ranks."""
        return await self._reconciler.reconcile(
            scope,
            lambda: self._api.fetch_pick_lists(scope.organization_id),
            PICK_LISTS,
        )
