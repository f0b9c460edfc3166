"""Normalization of loosely-typed remote payloads into canonical rows.

Every ``normalize_*`` function takes one remote record and returns a model
(or a list of models, possibly empty) when the record is usable, and None
when it is not. Nothing here raises on bad input: one malformed
record must never abort a whole sync pass.
"""

import math
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from .models import (
    AlreadyPitScouted,
    AlreadyPrescouted,
    AlreadyRobotPhoto,
    AlreadyScouted,
    AlreadySuperScouted,
    Event,
    MatchSchedule,
    Organization,
    PickList,
    PickListRank,
    SuperScoutField,
    Team,
    TeamEvent,
    UserOrganization,
)

# Container keys tried, in order, when unwrapping list envelopes
CONTAINER_KEYS = ("data", "items", "results")

# Keys that may hold a photo URL in image payloads
IMAGE_URL_KEYS = ("image_url", "imageUrl", "url", "public_url", "publicUrl")

# Keys that may hold the stored URL in an upload response
UPLOAD_URL_KEYS = (
    "remoteUrl",
    "imageUrl",
    "image_url",
    "url",
    "publicUrl",
    "public_url",
    "signedUrl",
    "signed_url",
)

_TRUE_STRINGS = ("true", "1", "yes")


# ==================== Coercion ====================


def to_number(value: Any) -> int | float | None:
    """Coerce a number or numeric string to a finite number."""
    if isinstance(value, bool):
        return None

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        return value if math.isfinite(value) else None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return int(text)
        except ValueError:
            pass
        try:
            parsed = float(text)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None

    return None


def to_int(value: Any) -> int | None:
    """Coerce to an integer, rejecting fractional values."""
    number = to_number(value)

    if number is None:
        return None

    if isinstance(number, float):
        return int(number) if number.is_integer() else None

    return number


def to_team_number(value: Any) -> int | None:
    """Coerce a team reference such as ``254``, ``"254"`` or ``"frc254"``."""
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("frc"):
            text = text[3:]
        return to_int(text)

    return to_int(value)


def to_string(value: Any) -> str | None:
    """Trim strings (empty means absent) and stringify finite numbers."""
    if isinstance(value, str):
        text = value.strip()
        return text or None

    if isinstance(value, bool):
        return None

    if isinstance(value, int):
        return str(value)

    if isinstance(value, float) and math.isfinite(value):
        return str(int(value)) if value.is_integer() else str(value)

    return None


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value

    if isinstance(value, (int, float)):
        return value != 0

    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS

    return False


def first_present(
    record: dict[str, Any],
    keys: Iterable[str],
    coerce: Callable[[Any], Any],
) -> Any:
    """Return the first alias whose value coerces to something usable."""
    for key in keys:
        value = coerce(record.get(key))
        if value is not None:
            return value
    return None


# ==================== Envelopes ====================


def extract_items(response: Any) -> list[Any]:
    """Unwrap a list response that may be wrapped in a container object.

    Accepts a bare list, or an object holding the list under one of
    ``data``, ``items`` or ``results``, optionally nested one level deeper
    under the same keys. Returns an empty list when nothing matches.
    """
    if isinstance(response, list):
        return response

    if not isinstance(response, dict):
        return []

    for key in CONTAINER_KEYS:
        value = response.get(key)

        if isinstance(value, list):
            return value

        if isinstance(value, dict):
            for nested_key in CONTAINER_KEYS:
                nested = value.get(nested_key)
                if isinstance(nested, list):
                    return nested

    return []


def has_more_pages(response: Any, page: int, received: list[Any]) -> bool:
    """Decide whether another page should be requested."""
    if isinstance(response, dict):
        meta = response.get("meta")

        if isinstance(meta, dict):
            next_page = meta.get("nextPage")
            if isinstance(next_page, int) and not isinstance(next_page, bool):
                return next_page > page

            has_next = meta.get("hasNext")
            if isinstance(has_next, bool):
                return has_next

            total_pages = meta.get("totalPages", meta.get("lastPage"))
            current = meta.get("page", meta.get("currentPage"))
            if isinstance(current, int) and isinstance(total_pages, int):
                return current < total_pages

    return len(received) > 0


# ==================== Assignments ====================


def extract_event_code(response: Any) -> str | None:
    """Read the assigned event code from a ``/user/event`` response."""
    if not isinstance(response, dict):
        return None

    return first_present(response, ("eventCode", "event_code"), to_string)


def extract_organization_id(response: Any) -> int | None:
    """Read the assigned organization from a ``/user/organization`` response."""
    if not isinstance(response, dict):
        return None

    return first_present(response, ("organizationId", "organization_id"), to_int)


def year_from_event_key(event_key: str) -> int | None:
    """Event keys start with the season year, e.g. ``2025miket``."""
    prefix = event_key[:4]
    return int(prefix) if prefix.isdigit() else None


# ==================== General data ====================


def normalize_team(item: Any) -> Team | None:
    if not isinstance(item, dict):
        return None

    team_number = first_present(
        item, ("team_number", "teamNumber", "team", "number"), to_team_number
    )
    team_name = first_present(
        item, ("team_name", "teamName", "nickname", "name"), to_string
    )

    if team_number is None or team_name is None:
        return None

    location = first_present(item, ("location", "city", "state_prov"), to_string)
    return Team(team_number=team_number, team_name=team_name, location=location)


def normalize_event(item: Any) -> Event | None:
    if not isinstance(item, dict):
        return None

    event_key = first_present(
        item, ("event_key", "eventKey", "event_code", "eventCode", "key"), to_string
    )
    event_name = first_present(
        item, ("event_name", "eventName", "name", "title"), to_string
    )

    if event_key is None or event_name is None:
        return None

    year = to_int(item.get("year"))
    if year is None:
        year = year_from_event_key(event_key) or 0

    return Event(
        event_key=event_key,
        event_name=event_name,
        short_name=first_present(item, ("short_name", "shortName"), to_string),
        year=year,
        week=to_int(item.get("week")) or 0,
    )


# ==================== Event data ====================


def _alliance_slots(item: dict[str, Any], color: str) -> list[int | None]:
    slots = [item.get(f"{color}{n}_id", item.get(f"{color}{n}")) for n in (1, 2, 3)]

    if all(slot is None for slot in slots):
        teams = item.get(color)
        if teams is None:
            teams = item.get(f"{color}_teams", item.get(f"{color}Teams"))
        if isinstance(teams, list):
            slots = (list(teams) + [None, None, None])[:3]

    return [to_team_number(slot) for slot in slots]


def normalize_match_schedule(item: Any, event_key: str) -> MatchSchedule | None:
    """Normalize one scheduled match for ``event_key``.

    Alliances may arrive as slot fields (``red1_id`` ... ``blue3_id``) or as
    three-element ``red``/``blue`` team lists.
    """
    if not isinstance(item, dict):
        return None

    match_level = first_present(
        item, ("match_level", "matchLevel", "comp_level", "level"), to_string
    )
    match_number = first_present(
        item, ("match_number", "matchNumber", "number"), to_int
    )

    red = _alliance_slots(item, "red")
    blue = _alliance_slots(item, "blue")

    if match_level is None or match_number is None or None in red or None in blue:
        return None

    return MatchSchedule(
        event_key=event_key,
        match_level=match_level,
        match_number=match_number,
        red1_id=red[0],
        red2_id=red[1],
        red3_id=red[2],
        blue1_id=blue[0],
        blue2_id=blue[1],
        blue3_id=blue[2],
    )


def normalize_team_event(item: Any, event_key: str) -> TeamEvent | None:
    if isinstance(item, dict):
        team_number = first_present(
            item, ("team_number", "teamNumber", "team", "number"), to_team_number
        )
    else:
        team_number = to_team_number(item)

    if team_number is None:
        return None

    return TeamEvent(event_key=event_key, team_number=team_number)


def normalize_user_organization(
    item: Any,
) -> tuple[Organization, UserOrganization] | None:
    """Normalize one membership record into the organization and membership.

    The organization may be flattened into the membership record or nested
    under ``organization``. A record with only ``id`` is read as a bare
    organization listing.
    """
    if not isinstance(item, dict):
        return None

    nested = item.get("organization")
    nested = nested if isinstance(nested, dict) else {}

    organization_id = first_present(item, ("organization_id", "organizationId"), to_int)
    user_organization_id = first_present(
        item, ("user_organization_id", "userOrganizationId"), to_int
    )

    if organization_id is None:
        organization_id = to_int(nested.get("id"))
        if organization_id is not None and user_organization_id is None:
            user_organization_id = to_int(item.get("id"))

    if organization_id is None:
        organization_id = to_int(item.get("id"))

    name = first_present(
        item, ("organization_name", "organizationName", "name"), to_string
    ) or to_string(nested.get("name"))

    if organization_id is None or name is None:
        return None

    team_number = first_present(
        item, ("team_number", "teamNumber"), to_team_number
    )
    if team_number is None:
        team_number = first_present(nested, ("team_number", "teamNumber"), to_team_number)

    return (
        Organization(id=organization_id, name=name, team_number=team_number),
        UserOrganization(
            organization_id=organization_id,
            user_organization_id=user_organization_id,
            role=to_string(item.get("role")),
        ),
    )


# ==================== Markers ====================


_EVENT_CODE_KEYS = ("event_code", "eventCode", "event_key", "eventKey")
_MATCH_LEVEL_KEYS = ("match_level", "matchLevel")
_MATCH_NUMBER_KEYS = ("match_number", "matchNumber")
_TEAM_NUMBER_KEYS = ("team_number", "teamNumber")
_ORGANIZATION_KEYS = ("organization_id", "organizationId")


def normalize_already_scouted(item: Any) -> AlreadyScouted | None:
    if not isinstance(item, dict):
        return None

    event_code = first_present(item, _EVENT_CODE_KEYS, to_string)
    match_level = first_present(item, _MATCH_LEVEL_KEYS, to_string)
    team_number = first_present(item, _TEAM_NUMBER_KEYS, to_team_number)
    match_number = first_present(item, _MATCH_NUMBER_KEYS, to_int)
    organization_id = first_present(item, _ORGANIZATION_KEYS, to_int)

    if None in (event_code, match_level, team_number, match_number, organization_id):
        return None

    return AlreadyScouted(
        event_code=event_code,
        organization_id=organization_id,
        team_number=team_number,
        match_level=match_level,
        match_number=match_number,
    )


def normalize_already_pit_scouted(item: Any) -> AlreadyPitScouted | None:
    if not isinstance(item, dict):
        return None

    event_code = first_present(item, _EVENT_CODE_KEYS, to_string)
    team_number = first_present(item, _TEAM_NUMBER_KEYS, to_team_number)
    organization_id = first_present(item, _ORGANIZATION_KEYS, to_int)

    if None in (event_code, team_number, organization_id):
        return None

    return AlreadyPitScouted(
        event_code=event_code,
        organization_id=organization_id,
        team_number=team_number,
    )


def normalize_already_prescouted(item: Any) -> AlreadyPrescouted | None:
    if not isinstance(item, dict):
        return None

    event_key = first_present(item, _EVENT_CODE_KEYS, to_string)
    team_number = first_present(item, _TEAM_NUMBER_KEYS, to_team_number)
    match_level = first_present(item, _MATCH_LEVEL_KEYS, to_string)
    match_number = first_present(item, _MATCH_NUMBER_KEYS, to_int)

    if None in (event_key, team_number, match_level, match_number):
        return None

    return AlreadyPrescouted(
        event_key=event_key,
        team_number=team_number,
        match_level=match_level,
        match_number=match_number,
    )


def normalize_already_super_scouted(item: Any) -> list[AlreadySuperScouted] | None:
    """One remote record flags either alliance, so it yields up to two rows.

    A record flagging neither alliance is valid and yields no rows.
    """
    if not isinstance(item, dict):
        return None

    event_code = first_present(item, _EVENT_CODE_KEYS, to_string)
    match_level = first_present(item, _MATCH_LEVEL_KEYS, to_string)
    match_number = first_present(item, _MATCH_NUMBER_KEYS, to_int)

    if None in (event_code, match_level, match_number):
        return None

    return [
        AlreadySuperScouted(
            event_code=event_code,
            match_level=match_level,
            match_number=match_number,
            alliance=alliance,
        )
        for alliance in ("red", "blue")
        if to_bool(item.get(alliance))
    ]


def _first_url(image: dict[str, Any]) -> str | None:
    for key in IMAGE_URL_KEYS:
        value = image.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def normalize_event_images(item: Any, event_key: str) -> list[AlreadyRobotPhoto] | None:
    """Normalize one ``{teamNumber, images: [...]}`` group of the photo index."""
    if not isinstance(item, dict):
        return None

    team_number = first_present(item, ("teamNumber", "team_number"), to_team_number)
    images = item.get("images")

    if team_number is None or not isinstance(images, list):
        return None

    photos = []
    for image in images:
        if not isinstance(image, dict):
            continue

        image_id = to_string(image.get("id"))
        if image_id is None:
            continue

        photos.append(
            AlreadyRobotPhoto(
                event_key=event_key,
                team_number=team_number,
                image_id=image_id,
                image_url=_first_url(image),
                description=to_string(image.get("description")),
            )
        )

    return photos


def normalize_super_scout_field(item: Any) -> SuperScoutField | None:
    if not isinstance(item, dict):
        return None

    key = item.get("key")
    if not isinstance(key, str) or not key.strip():
        return None

    key = key.strip()
    label = item.get("label")
    label = label.strip() if isinstance(label, str) else ""

    return SuperScoutField(key=key, label=label or key)


# ==================== Pick lists ====================


def to_unix_seconds(value: Any) -> int | None:
    """Parse an ISO-8601 timestamp into whole unix seconds.

    A timestamp without an offset is read as UTC.
    """
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return math.floor(parsed.timestamp())


def normalize_pick_list_rank(item: Any) -> PickListRank | None:
    if not isinstance(item, dict):
        return None

    rank = first_present(item, ("rank", "rank_value", "position"), to_int)
    team_number = first_present(item, ("teamNumber", "team_number", "team"), to_team_number)
    if rank is None or team_number is None:
        return None

    dnp = any(to_bool(item.get(key)) for key in ("dnp", "is_dnp", "do_not_pick"))

    return PickListRank(
        rank=rank,
        team_number=team_number,
        notes=to_string(item.get("notes")) or "",
        dnp=dnp,
    )


def normalize_pick_list(item: Any, organization_id: int | None = None) -> PickList | None:
    """Normalize one pick list with its ranks.

    A list without an organization of its own belongs to ``organization_id``.
    Ranks are sorted; a repeated rank keeps its first entry.
    """
    if not isinstance(item, dict):
        return None

    list_id = first_present(item, ("id", "uuid"), to_string)
    owner = first_present(item, ("organizationId", "organization_id", "org_id"), to_int)
    if owner is None:
        owner = organization_id
    if list_id is None or owner is None:
        return None

    ranks: dict[int, PickListRank] = {}
    raw_ranks = item.get("ranks")
    for entry in raw_ranks if isinstance(raw_ranks, list) else []:
        rank = normalize_pick_list_rank(entry)
        if rank is not None and rank.rank not in ranks:
            ranks[rank.rank] = rank

    created_at = first_present(item, ("createdAt", "created_at", "created"), to_unix_seconds)
    updated_at = first_present(
        item, ("updatedAt", "updated_at", "last_updated"), to_unix_seconds
    )

    return PickList(
        id=list_id,
        organization_id=owner,
        title=to_string(item.get("title")) or "Pick List",
        season=first_present(item, ("season", "season_id", "year"), to_int),
        event_key=first_present(item, ("eventKey", "event_key", "eventCode"), to_string),
        notes=to_string(item.get("notes")) or "",
        created_at=created_at,
        updated_at=updated_at if updated_at is not None else created_at,
        favorited=any(
            to_bool(item.get(key)) for key in ("favorited", "is_favorited", "favorite")
        ),
        ranks=tuple(ranks[key] for key in sorted(ranks)),
    )


# ==================== Upload responses ====================


def find_remote_url(value: Any, depth: int = 0) -> str | None:
    """Search an upload response for the first http(s) URL.

    Known URL keys are tried before any other nested value. The search
    stops four levels down.
    """
    if depth > 4:
        return None

    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith(("http://", "https://")):
            return text
        return None

    if not isinstance(value, dict):
        return None

    for key in UPLOAD_URL_KEYS:
        if key in value:
            found = find_remote_url(value[key], depth + 1)
            if found:
                return found

    for nested in value.values():
        found = find_remote_url(nested, depth + 1)
        if found:
            return found

    return None
