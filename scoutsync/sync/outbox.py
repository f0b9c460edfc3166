"""Push-side delivery of locally originated records.

Each outbox table keeps a ``pending`` flag. A dispatch pass submits every
pending row of the active event one at a time, then clears the flag of the
rows the remote accepted in a single transaction. Rejected or timed-out
rows stay pending and are sent again on the next pass, so delivery is
at-least-once; the remote is idempotent on the natural key.
"""

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable

from ..errors import NoActiveEventError, RemoteError
from ..models import Scope
from ..normalize import find_remote_url
from ..remote import ScoutingApi
from ..store import LocalStore
from ..store.local_store import MATCH_KEY, PIT_KEY

logger = logging.getLogger(__name__)

NO_SHOW = "NO_SHOW"


@dataclass
class Submission:
    """Outcome of submitting one row that did not raise."""

    extra: dict[str, Any] = field(default_factory=dict)  # written with the cleared flag
    discarded: bool = False  # undeliverable; flag cleared without a remote copy


@dataclass
class DispatchFailure:
    key: tuple[Any, ...]
    error: str
    retryable: bool


@dataclass
class DispatchResult:
    """Outcome of one dispatch pass over a channel."""

    channel: str
    sent: int = 0
    still_pending: int = 0
    discarded: int = 0
    failures: list[DispatchFailure] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class OutboxChannel:
    """Describes how one outbox table is delivered."""

    name: str
    table: str
    key_columns: tuple[str, ...]
    build_payload: Callable[[dict[str, Any], Any], dict[str, Any]]
    submit: Callable[[ScoutingApi, dict[str, Any], dict[str, Any]], Awaitable[Submission]]
    prepare: Callable[[LocalStore, str], Any] | None = None  # per-pass context


# ==================== Payloads ====================


def _scouting_payload(row: dict[str, Any], context: Any = None) -> dict[str, Any]:
    """Flatten season-specific ``data`` next to the identifying fields."""
    payload = dict(row.get("data") or {})
    for column in ("event_key", "team_number", "match_level", "match_number"):
        if column in row:
            payload[column] = row[column]
    if row.get("notes"):
        payload["notes"] = row["notes"]
    return payload


@dataclass
class SuperScoutContext:
    field_keys: list[str]
    selections: dict[tuple[Any, ...], set[str]]


def _prepare_super_scout(store: LocalStore, event_key: str) -> SuperScoutContext:
    return SuperScoutContext(
        field_keys=store.get_super_scout_field_keys(),
        selections=store.get_super_scout_selections(event_key),
    )


def build_super_scout_payload(
    row: dict[str, Any], context: SuperScoutContext
) -> dict[str, Any]:
    """Build the super-scout wire payload.

    Optional values the remote treats as absent are omitted: a ``NO_SHOW``
    start position and a zero defense rating. Every key of the current
    vocabulary is sent as a boolean.
    """
    payload: dict[str, Any] = {
        "team_number": row["team_number"],
        "match_number": row["match_number"],
        "match_level": row["match_level"],
        "notes": row.get("notes") or "",
        "driver_rating": row.get("driver_rating"),
        "robot_overall": row.get("robot_overall"),
    }

    start_position = row.get("start_position")
    if start_position and start_position != NO_SHOW:
        payload["startPosition"] = start_position

    defense_rating = row.get("defense_rating")
    if defense_rating and defense_rating > 0:
        payload["defense_rating"] = defense_rating

    selected = context.selections.get(tuple(row[c] for c in MATCH_KEY), set())
    for field_key in context.field_keys:
        payload[field_key] = field_key in selected

    return payload


def _robot_photo_payload(row: dict[str, Any], context: Any = None) -> dict[str, Any]:
    return {"team_number": row["team_number"], "description": row.get("description")}


# ==================== Submitters ====================


async def _submit_match(api: ScoutingApi, row: dict[str, Any], payload: dict[str, Any]) -> Submission:
    await api.submit_match(payload)
    return Submission()


async def _submit_pit(api: ScoutingApi, row: dict[str, Any], payload: dict[str, Any]) -> Submission:
    await api.submit_pit(payload)
    return Submission()


async def _submit_prescout(api: ScoutingApi, row: dict[str, Any], payload: dict[str, Any]) -> Submission:
    await api.submit_prescout(payload)
    return Submission()


async def _submit_super_scout(api: ScoutingApi, row: dict[str, Any], payload: dict[str, Any]) -> Submission:
    await api.submit_super_scout(payload)
    return Submission()


def local_photo_path(local_uri: str) -> Path:
    if local_uri.startswith("file://"):
        local_uri = local_uri[len("file://"):]
    return Path(local_uri).expanduser()


async def _upload_robot_photo(api: ScoutingApi, row: dict[str, Any], payload: dict[str, Any]) -> Submission:
    path = local_photo_path(row["local_uri"])

    if not path.exists():
        logger.warning(
            f"Robot photo {row['local_uri']} not found on device; "
            f"marking upload complete without a remote copy"
        )
        return Submission(discarded=True)

    response = await api.upload_robot_photo(
        payload["team_number"], path, payload.get("description")
    )
    return Submission(extra={"remote_url": find_remote_url(response)})


# ==================== Channels ====================

MATCH_CHANNEL = OutboxChannel(
    "match", "match_record", MATCH_KEY, _scouting_payload, _submit_match
)
PIT_CHANNEL = OutboxChannel("pit", "pit_record", PIT_KEY, _scouting_payload, _submit_pit)
PRESCOUT_CHANNEL = OutboxChannel(
    "prescout", "prescout_record", MATCH_KEY, _scouting_payload, _submit_prescout
)
SUPER_SCOUT_CHANNEL = OutboxChannel(
    "super_scout",
    "super_scout_record",
    MATCH_KEY,
    build_super_scout_payload,
    _submit_super_scout,
    prepare=_prepare_super_scout,
)
ROBOT_PHOTO_CHANNEL = OutboxChannel(
    "robot_photo", "robot_photo", ("id",), _robot_photo_payload, _upload_robot_photo
)

CHANNELS = (
    MATCH_CHANNEL,
    PIT_CHANNEL,
    PRESCOUT_CHANNEL,
    SUPER_SCOUT_CHANNEL,
    ROBOT_PHOTO_CHANNEL,
)


class OutboxDispatcher:
    """Submits pending outbox rows and clears the flag of delivered ones."""

    def __init__(self, store: LocalStore, api: ScoutingApi):
        self._store = store
        self._api = api

    async def dispatch(self, scope: Scope, channel: OutboxChannel) -> DispatchResult:
        """Deliver every pending row of ``channel`` for the scope's event.

        Rows are submitted sequentially. A remote failure is recorded and
        the row stays pending. Any other error propagates once the rows
        delivered before it have been cleared. A row edited while in flight
        stays pending and is not counted as sent.

        Args:
            scope: Scope whose event bounds the pass.
            channel: Outbox channel to deliver.

        Returns:
            DispatchResult with sent, still pending and discarded counts.

        Raises:
            NoActiveEventError: If the scope has no event.
        """
        if not scope.event_code:
            raise NoActiveEventError()

        result = DispatchResult(channel=channel.name)
        rows = self._store.get_pending(channel.table, scope.event_code)
        if not rows:
            return result

        context = channel.prepare(self._store, scope.event_code) if channel.prepare else None
        delivered: list[tuple[dict[str, Any], Submission]] = []
        cleared: list[dict[str, Any]] = []

        try:
            for row in rows:
                key = tuple(row[column] for column in channel.key_columns)
                payload = channel.build_payload(row, context)

                try:
                    submission = await channel.submit(self._api, row, payload)
                except RemoteError as e:
                    logger.warning(f"Failed to submit {channel.name} {key}: {e}")
                    result.failures.append(
                        DispatchFailure(key=key, error=str(e), retryable=e.retryable)
                    )
                    continue

                delivered.append((row, submission))
        finally:
            # Rows the remote already accepted are cleared even if a later row raised
            if delivered:
                cleared = self._store.mark_submitted(
                    channel.table,
                    channel.key_columns,
                    [(row, submission.extra) for row, submission in delivered],
                )

        cleared_ids = {id(row) for row in cleared}
        result.discarded = sum(
            1
            for row, submission in delivered
            if submission.discarded and id(row) in cleared_ids
        )
        result.sent = len(cleared) - result.discarded
        result.still_pending = len(rows) - len(cleared)

        logger.info(
            f"Dispatched {channel.name}: sent={result.sent}, "
            f"still_pending={result.still_pending}, discarded={result.discarded}"
        )
        return result
