"""Tests for remote payload normalization."""

import pytest

from scoutsync.models import (
    AlreadySuperScouted,
    MatchSchedule,
    Organization,
    PickListRank,
    UserOrganization,
)
from scoutsync.normalize import (
    extract_event_code,
    extract_items,
    extract_organization_id,
    find_remote_url,
    has_more_pages,
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
    to_bool,
    to_int,
    to_number,
    to_string,
    to_team_number,
    to_unix_seconds,
    year_from_event_key,
)


class TestCoercion:
    """Tests for scalar coercers."""

    def test_to_number_accepts_numeric_strings(self):
        assert to_number("42") == 42
        assert to_number(" 3.5 ") == 3.5
        assert to_number(7) == 7

    def test_to_number_rejects_bad_values(self):
        assert to_number(True) is None
        assert to_number("") is None
        assert to_number("abc") is None
        assert to_number(float("nan")) is None
        assert to_number("inf") is None
        assert to_number(None) is None

    def test_to_int_rejects_fractions(self):
        assert to_int("12") == 12
        assert to_int(12.0) == 12
        assert to_int(12.5) is None

    def test_to_team_number_strips_frc_prefix(self):
        assert to_team_number("frc254") == 254
        assert to_team_number("FRC1678") == 1678
        assert to_team_number("254") == 254
        assert to_team_number("frc") is None

    def test_to_string_trims_and_treats_empty_as_absent(self):
        assert to_string("  Einstein ") == "Einstein"
        assert to_string("   ") is None
        assert to_string(5) == "5"
        assert to_string(5.0) == "5"
        assert to_string(None) is None

    def test_to_bool(self):
        assert to_bool(True) is True
        assert to_bool(1) is True
        assert to_bool("yes") is True
        assert to_bool("false") is False
        assert to_bool(None) is False


class TestEnvelopes:
    """Tests for list envelope unwrapping and pagination."""

    def test_bare_list(self):
        assert extract_items([1, 2]) == [1, 2]

    def test_container_key_order(self):
        assert extract_items({"items": [2], "data": [1]}) == [1]
        assert extract_items({"results": [3]}) == [3]

    def test_one_level_of_nesting(self):
        assert extract_items({"data": {"items": [1, 2]}}) == [1, 2]

    def test_no_list_found(self):
        assert extract_items({"data": {"data": {"data": [1]}}}) == []
        assert extract_items("oops") == []
        assert extract_items(None) == []

    def test_has_more_pages_from_meta(self):
        assert has_more_pages({"meta": {"nextPage": 3}}, 2, [1]) is True
        assert has_more_pages({"meta": {"hasNext": False}}, 1, [1]) is False
        assert has_more_pages({"meta": {"page": 2, "totalPages": 2}}, 2, [1]) is False
        assert has_more_pages({"meta": {"currentPage": 1, "lastPage": 4}}, 1, [1]) is True

    def test_has_more_pages_without_meta(self):
        assert has_more_pages([1, 2], 1, [1, 2]) is True
        assert has_more_pages([], 5, []) is False


class TestAssignments:
    def test_extract_event_code(self):
        assert extract_event_code({"eventCode": "2025miket"}) == "2025miket"
        assert extract_event_code({"event_code": " "}) is None
        assert extract_event_code(None) is None

    def test_extract_organization_id(self):
        assert extract_organization_id({"organizationId": "12"}) == 12
        assert extract_organization_id({}) is None

    def test_year_from_event_key(self):
        assert year_from_event_key("2024casj") == 2024
        assert year_from_event_key("casj") is None


class TestGeneralData:
    """Tests for team and event normalization."""

    def test_team_aliases(self):
        team = normalize_team({"teamNumber": "frc254", "nickname": "The Cheesy Poofs", "city": "San Jose"})

        assert team.team_number == 254
        assert team.team_name == "The Cheesy Poofs"
        assert team.location == "San Jose"

    def test_team_requires_number_and_name(self):
        assert normalize_team({"team_number": 254}) is None
        assert normalize_team({"team_name": "No number"}) is None
        assert normalize_team("254") is None

    def test_event_year_falls_back_to_key(self):
        event = normalize_event({"key": "2025miket", "name": "Kettering"})

        assert event.event_key == "2025miket"
        assert event.year == 2025
        assert event.week == 0

    def test_event_requires_name(self):
        assert normalize_event({"event_key": "2025miket"}) is None


class TestMatchSchedule:
    """Tests for match schedule normalization."""

    def test_alliance_lists(self):
        match = normalize_match_schedule(
            {"level": "qm", "number": 1, "red": [1, 2, 3], "blue": [4, 5, 6]},
            "2025miket",
        )

        assert match == MatchSchedule("2025miket", "qm", 1, 1, 2, 3, 4, 5, 6)
        assert match.team_numbers == (1, 2, 3, 4, 5, 6)

    def test_slot_fields(self):
        match = normalize_match_schedule(
            {
                "matchLevel": "sf",
                "matchNumber": "2",
                "red1_id": "frc10",
                "red2_id": 20,
                "red3_id": 30,
                "blue1_id": 40,
                "blue2_id": 50,
                "blue3_id": 60,
            },
            "2025miket",
        )

        assert match.match_level == "sf"
        assert match.match_number == 2
        assert match.red1_id == 10

    def test_incomplete_alliance_rejected(self):
        assert normalize_match_schedule(
            {"level": "qm", "number": 1, "red": [1, 2], "blue": [4, 5, 6]},
            "2025miket",
        ) is None

    def test_missing_level_rejected(self):
        assert normalize_match_schedule(
            {"number": 1, "red": [1, 2, 3], "blue": [4, 5, 6]}, "2025miket"
        ) is None

    def test_team_event_accepts_bare_numbers(self):
        assert normalize_team_event("frc33", "2025miket").team_number == 33
        assert normalize_team_event({"teamNumber": 33}, "2025miket").event_key == "2025miket"
        assert normalize_team_event({"name": "x"}, "2025miket") is None


class TestOrganizations:
    """Tests for membership normalization."""

    def test_flat_membership(self):
        result = normalize_user_organization(
            {
                "organization_id": 3,
                "user_organization_id": 17,
                "organization_name": "Robo Hounds",
                "team_number": 1234,
                "role": "SCOUT",
            }
        )

        assert result == (
            Organization(id=3, name="Robo Hounds", team_number=1234),
            UserOrganization(organization_id=3, user_organization_id=17, role="SCOUT"),
        )

    def test_nested_organization(self):
        organization, membership = normalize_user_organization(
            {"id": 17, "role": "ADMIN", "organization": {"id": 3, "name": "Robo Hounds"}}
        )

        assert organization.id == 3
        assert organization.name == "Robo Hounds"
        assert membership.user_organization_id == 17

    def test_bare_organization(self):
        organization, membership = normalize_user_organization({"id": 3, "name": "Robo Hounds"})

        assert organization.id == 3
        assert membership.user_organization_id is None

    def test_missing_name_rejected(self):
        assert normalize_user_organization({"organization_id": 3}) is None


class TestMarkers:
    """Tests for already-scouted marker normalization."""

    def test_already_scouted(self):
        marker = normalize_already_scouted(
            {
                "eventCode": "2025miket",
                "organizationId": 3,
                "teamNumber": "254",
                "matchLevel": "qm",
                "matchNumber": 4,
            }
        )

        assert marker.team_number == 254
        assert marker.organization_id == 3

    def test_already_scouted_requires_organization(self):
        assert normalize_already_scouted(
            {"eventCode": "2025miket", "teamNumber": 254, "matchLevel": "qm", "matchNumber": 4}
        ) is None

    def test_super_scouted_fans_out_per_alliance(self):
        markers = normalize_already_super_scouted(
            {"event_code": "2025miket", "match_level": "qm", "match_number": 2, "red": True, "blue": 1}
        )

        assert markers == [
            AlreadySuperScouted("2025miket", "qm", 2, "red"),
            AlreadySuperScouted("2025miket", "qm", 2, "blue"),
        ]

    def test_super_scouted_without_flags(self):
        assert normalize_already_super_scouted(
            {"event_code": "2025miket", "match_level": "qm", "match_number": 2}
        ) == []
        assert normalize_already_super_scouted({"match_level": "qm", "match_number": 2}) is None
        assert normalize_already_super_scouted("junk") is None

    def test_event_images(self):
        photos = normalize_event_images(
            {
                "teamNumber": 254,
                "images": [
                    {"id": 9, "imageUrl": "https://img/9.jpg", "description": "front"},
                    {"url": "https://img/none.jpg"},
                    "junk",
                ],
            },
            "2025miket",
        )

        assert len(photos) == 1
        assert photos[0].image_id == "9"
        assert photos[0].image_url == "https://img/9.jpg"
        assert photos[0].description == "front"
        assert normalize_event_images({"teamNumber": 254}, "2025miket") is None
        assert normalize_event_images({"teamNumber": 254, "images": []}, "2025miket") == []

    def test_super_scout_field_label_defaults_to_key(self):
        assert normalize_super_scout_field({"key": "fast"}).label == "fast"
        assert normalize_super_scout_field({"key": "  "}) is None
        assert normalize_super_scout_field({"label": "Fast"}) is None


class TestPickLists:
    """Tests for pick list normalization."""

    def test_aliases_and_defaults(self):
        pick_list = normalize_pick_list(
            {
                "uuid": "abc",
                "org_id": "4",
                "season_id": 2025,
                "eventCode": "2025miket",
                "is_favorited": 1,
                "last_updated": "2025-03-01T00:00:10+00:00",
            }
        )

        assert pick_list.id == "abc"
        assert pick_list.organization_id == 4
        assert pick_list.title == "Pick List"
        assert pick_list.notes == ""
        assert pick_list.event_key == "2025miket"
        assert pick_list.favorited is True
        assert pick_list.created_at is None
        assert pick_list.updated_at == 1740787210

    def test_organization_fallback(self):
        assert normalize_pick_list({"id": 7}, organization_id=3).organization_id == 3
        assert normalize_pick_list({"id": 7}) is None
        assert normalize_pick_list({"title": "No id"}, organization_id=3) is None

    def test_ranks_sorted_and_deduplicated(self):
        pick_list = normalize_pick_list(
            {
                "id": "pl",
                "ranks": [
                    {"position": 2, "team": "frc33", "do_not_pick": True},
                    {"rank": 1, "teamNumber": 254, "notes": " fast "},
                    {"rank": 2, "team_number": 1678},
                    {"rank": 3},
                    "junk",
                ],
            },
            organization_id=3,
        )

        assert pick_list.ranks == (
            PickListRank(rank=1, team_number=254, notes="fast"),
            PickListRank(rank=2, team_number=33, dnp=True),
        )

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("1970-01-01T00:01:00Z", 60),
            ("1970-01-01T00:01:00", 60),
            ("1970-01-01T01:01:00+01:00", 60),
            ("not a date", None),
            ("", None),
            (60, None),
        ],
    )
    def test_to_unix_seconds(self, value, expected):
        assert to_unix_seconds(value) == expected


class TestFindRemoteUrl:
    """Tests for upload response URL discovery."""

    def test_known_key_first(self):
        response = {"other": "https://other", "remoteUrl": "https://stored/1.jpg"}

        assert find_remote_url(response) == "https://stored/1.jpg"

    def test_nested(self):
        assert find_remote_url({"data": {"image": {"publicUrl": "http://x/y.png"}}}) == "http://x/y.png"

    def test_ignores_non_http(self):
        assert find_remote_url({"url": "s3://bucket/key"}) is None

    @pytest.mark.parametrize("depth", [5, 6])
    def test_depth_limit(self, depth):
        value = "https://deep"
        for _ in range(depth):
            value = {"wrap": value}

        assert find_remote_url(value) is None
