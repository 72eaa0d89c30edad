"""Tests for snapshot flattening and attribute prefix mapping."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from membersync.core.errors import ErrorCode, SchemaError
from membersync.sync.attributes import AttributeDefinition, AttributeType
from membersync.sync.flatten import attribute_type_to_prefix, flatten, group_by_member
from membersync.sync.models import SegmentMemberSnapshot

SnapshotFactory = Callable[..., SegmentMemberSnapshot]


class TestAttributeTypeToPrefix:
    """Prefix table tests."""

    @pytest.mark.parametrize(
        ("attribute_type", "default_value", "expected"),
        [
            (AttributeType.BOOLEAN, True, "bool"),
            (AttributeType.NUMBER, 5, "int"),
            (AttributeType.NUMBER, 5.0, "int"),
            (AttributeType.NUMBER, 5.5, "float"),
            (AttributeType.EMAIL, "a@b.c", "string"),
            (AttributeType.STRING, "x", "string"),
            (AttributeType.URL, "https://x", "string"),
            (AttributeType.DATE, "2023-01-01", "date"),
            (AttributeType.MULTI_SELECT, ["a"], "string_arr"),
            (AttributeType.SPECIAL, {"k": 1}, "string"),
        ],
    )
    def test_given_type_when_mapped_then_prefix_matches_table(
        self, attribute_type: AttributeType, default_value: Any, expected: str
    ) -> None:
        """Each declared type maps to its documented prefix."""
        assert attribute_type_to_prefix(default_value, attribute_type) == expected

    def test_given_unknown_type_when_mapped_then_raises_schema_error(self) -> None:
        """Types outside the enum are rejected."""
        with pytest.raises(SchemaError) as exc_info:
            attribute_type_to_prefix("x", "geo_point")

        assert exc_info.value.code == ErrorCode.SCHEMA_UNKNOWN_ATTRIBUTE_TYPE

    def test_given_numeric_string_default_when_mapped_then_int(self) -> None:
        """Whole-number strings count as integers."""
        assert attribute_type_to_prefix("12", AttributeType.NUMBER) == "int"
        assert attribute_type_to_prefix("1.25", AttributeType.NUMBER) == "float"


class TestFlattenAttributes:
    """obj_attributes construction tests."""

    def test_given_integer_number_when_flattened_then_int_prefix(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """A NUMBER attribute with an integral default gets int_ sub-keys."""
        # Given
        snapshot = snapshot_factory(attributes={"age": {"default": 5, "github": 5}})
        schema = [AttributeDefinition("age", AttributeType.NUMBER)]

        # When
        doc = flatten([snapshot], schema)

        # Then
        assert doc["obj_attributes"] == {"obj_age": {"int_default": 5, "int_github": 5}}

    def test_given_fractional_number_when_flattened_then_float_prefix(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """A NUMBER attribute with a fractional default gets float_ sub-keys."""
        snapshot = snapshot_factory(attributes={"rating": {"default": 5.5}})
        schema = [AttributeDefinition("rating", AttributeType.NUMBER)]

        doc = flatten([snapshot], schema)

        assert doc["obj_attributes"] == {"obj_rating": {"float_default": 5.5}}

    def test_given_special_attribute_when_flattened_then_serialized_string(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """SPECIAL attributes become a single JSON string field."""
        value = {"default": ["a", "b"], "custom": {"x": 1}}
        snapshot = snapshot_factory(attributes={"location": value})
        schema = [AttributeDefinition("location", AttributeType.SPECIAL)]

        doc = flatten([snapshot], schema)

        attributes = doc["obj_attributes"]
        assert list(attributes) == ["string_location"]
        assert json.loads(attributes["string_location"]) == value

    def test_given_special_attribute_with_dates_when_flattened_then_iso_strings(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """Dates inside SPECIAL values use the same ISO format as date fields."""
        joined = datetime(2023, 1, 1, 12, 30, tzinfo=UTC)
        snapshot = snapshot_factory(attributes={"events": {"first": joined}})
        schema = [AttributeDefinition("events", AttributeType.SPECIAL)]

        doc = flatten([snapshot], schema)

        decoded = json.loads(doc["obj_attributes"]["string_events"])
        assert decoded == {"first": "2023-01-01T12:30:00+00:00"}

    def test_given_all_sub_keys_when_flattened_then_all_prefixed_by_default_type(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """Every source sub-key shares the prefix of the declared type."""
        snapshot = snapshot_factory(
            attributes={"skills": {"default": ["py"], "github": ["py", "go"], "custom": []}}
        )
        schema = [AttributeDefinition("skills", AttributeType.MULTI_SELECT)]

        doc = flatten([snapshot], schema)

        assert doc["obj_attributes"]["obj_skills"] == {
            "string_arr_default": ["py"],
            "string_arr_github": ["py", "go"],
            "string_arr_custom": [],
        }

    def test_given_attribute_absent_from_bag_when_flattened_then_omitted(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """Declared attributes the member has no value for are skipped."""
        snapshot = snapshot_factory(attributes={"bio": {"default": "hi"}})
        schema = [
            AttributeDefinition("bio", AttributeType.STRING),
            AttributeDefinition("isHireable", AttributeType.BOOLEAN),
        ]

        doc = flatten([snapshot], schema)

        assert doc["obj_attributes"] == {"obj_bio": {"string_default": "hi"}}

    def test_given_undeclared_attribute_when_flattened_then_ignored(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """Attributes without a schema entry have no type and are not indexed."""
        snapshot = snapshot_factory(attributes={"mystery": {"default": 1}})

        doc = flatten([snapshot], [])

        assert doc["obj_attributes"] == {}

    def test_given_unknown_type_in_schema_when_flattened_then_raises(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """An unmappable type anywhere in the schema rejects the whole member."""
        snapshot = snapshot_factory(attributes={"bio": {"default": "hi"}})
        schema = [
            AttributeDefinition("bio", AttributeType.STRING),
            AttributeDefinition("coords", "geo_point"),  # type: ignore[arg-type]
        ]

        with pytest.raises(SchemaError) as exc_info:
            flatten([snapshot], schema)

        assert exc_info.value.details["attribute"] == "coords"

    def test_given_raw_type_value_when_flattened_then_resolved(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """Stored type tags are accepted in place of enum members."""
        snapshot = snapshot_factory(attributes={"url": {"default": "https://x"}})
        schema = [AttributeDefinition("url", "url")]  # type: ignore[arg-type]

        doc = flatten([snapshot], schema)

        assert doc["obj_attributes"] == {"obj_url": {"string_default": "https://x"}}


class TestFlattenDocument:
    """Top-level document shape tests."""

    def test_given_single_snapshot_when_flattened_then_all_top_level_fields(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """The document carries every prefixed top-level field."""
        doc = flatten([snapshot_factory()], [])

        assert list(doc) == [
            "uuid_memberId",
            "uuid_tenantId",
            "string_displayName",
            "obj_attributes",
            "string_arr_emails",
            "int_score",
            "date_lastEnriched",
            "date_joinedAt",
            "int_totalReach",
            "int_numberOfOpenSourceContributions",
            "obj_arr_identities",
            "uuid_arr_toMergeIds",
            "uuid_arr_noMergeIds",
            "obj_arr_segments",
        ]
        assert doc["uuid_memberId"] == "m-1"
        assert doc["obj_arr_identities"] == [
            {"string_platform": "github", "string_username": "m-1"}
        ]

    def test_given_three_segments_when_flattened_then_one_segment_entry_each(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """Each snapshot contributes its own segment entry, in input order."""
        snapshots = [
            snapshot_factory(segment_id="s-1", activity_count=1),
            snapshot_factory(segment_id="s-2", activity_count=2, tags=[]),
            snapshot_factory(segment_id="s-3", activity_count=3, average_sentiment=None),
        ]

        doc = flatten(snapshots, [])

        segments = doc["obj_arr_segments"]
        assert [s["uuid_segmentId"] for s in segments] == ["s-1", "s-2", "s-3"]
        assert [s["int_activityCount"] for s in segments] == [1, 2, 3]
        assert segments[0]["obj_arr_tags"] == [{"uuid_id": "tag-1", "string_name": "vip"}]
        assert segments[1]["obj_arr_tags"] == []
        assert segments[2]["float_averageSentiment"] is None
        assert segments[0]["obj_arr_organizations"] == [
            {"uuid_id": "org-1", "string_logo": None, "string_displayName": "Acme"}
        ]

    def test_given_divergent_identity_fields_when_flattened_then_first_snapshot_wins(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """Segment-invariant fields are read from the first snapshot only."""
        snapshots = [
            snapshot_factory(segment_id="s-1", display_name="First"),
            snapshot_factory(segment_id="s-2", display_name="Second"),
        ]

        doc = flatten(snapshots, [])

        assert doc["string_displayName"] == "First"

    def test_given_missing_emails_when_flattened_then_empty_list(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        doc = flatten([snapshot_factory(emails=None)], [])

        assert doc["string_arr_emails"] == []

    def test_given_datetimes_when_flattened_then_iso_strings(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """Date fields are rendered JSON-ready."""
        joined = datetime(2023, 5, 1, 12, 0, tzinfo=UTC)
        doc = flatten([snapshot_factory(joined_at=joined, last_active=joined)], [])

        assert doc["date_joinedAt"] == "2023-05-01T12:00:00+00:00"
        assert doc["obj_arr_segments"][0]["date_lastActive"] == "2023-05-01T12:00:00+00:00"

    def test_given_same_input_when_flattened_twice_then_byte_identical(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """Flattening is deterministic."""
        snapshots = [
            snapshot_factory(
                segment_id="s-1",
                attributes={"age": {"default": 3}, "loc": {"default": "x"}},
            ),
            snapshot_factory(segment_id="s-2"),
        ]
        schema = [
            AttributeDefinition("age", AttributeType.NUMBER),
            AttributeDefinition("loc", AttributeType.SPECIAL),
        ]

        first = json.dumps(flatten(snapshots, schema))
        second = json.dumps(flatten(snapshots, schema))

        assert first == second

    def test_given_no_snapshots_when_flattened_then_value_error(self) -> None:
        with pytest.raises(ValueError):
            flatten([], [])


class TestGroupByMember:
    """Row grouping tests."""

    def test_given_interleaved_rows_when_grouped_then_first_seen_order(
        self, snapshot_factory: SnapshotFactory
    ) -> None:
        """Groups keep first-seen member order and row order within a member."""
        rows = [
            snapshot_factory("b", segment_id="s-1"),
            snapshot_factory("a", segment_id="s-1"),
            snapshot_factory("b", segment_id="s-2"),
        ]

        grouped = group_by_member(rows)

        assert list(grouped) == ["b", "a"]
        assert [row.segment_id for row in grouped["b"]] == ["s-1", "s-2"]
