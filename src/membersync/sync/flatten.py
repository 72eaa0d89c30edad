"""Attribute flattening: member snapshots to type-prefixed index documents.

The index schema is static: every field name carries a prefix naming its
type (``bool_``, ``int_``, ``float_``, ``string_``, ``date_``,
``string_arr_``, ``uuid_``, ``obj_``, ``obj_arr_``). Member attributes are
dynamic per tenant, so each attribute's values are nested under
``obj_attributes.obj_<name>`` with every sub-key prefixed according to the
attribute's declared type.

Everything here is pure. No I/O, no shared state.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from typing import Any

from membersync.core.errors import SchemaError
from membersync.sync.attributes import AttributeDefinition, AttributeType, normalize_schema
from membersync.sync.models import FlattenedDocument, SegmentMemberSnapshot

_MISSING = object()

# Sub-key used to pick the prefix of a NUMBER attribute
DEFAULT_KEY = "default"

_STATIC_PREFIXES: dict[AttributeType, str] = {
    AttributeType.BOOLEAN: "bool",
    AttributeType.EMAIL: "string",
    AttributeType.STRING: "string",
    AttributeType.URL: "string",
    AttributeType.DATE: "date",
    AttributeType.MULTI_SELECT: "string_arr",
    AttributeType.SPECIAL: "string",
}


def _is_integral(value: Any) -> bool:
    """Whether a NUMBER attribute's default value is a whole number."""
    if value is _MISSING:
        return False
    if value is None or isinstance(value, bool):
        return True
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return value.is_integer()
    if isinstance(value, str):
        try:
            return float(value or 0).is_integer()
        except ValueError:
            return False
    return False


def attribute_type_to_prefix(default_value: Any, attribute_type: Any) -> str:
    """Map an attribute type (and, for numbers, its default value) to a field prefix.

    Raises:
        SchemaError: The type is not an AttributeType.
    """
    if attribute_type == AttributeType.NUMBER:
        return "int" if _is_integral(default_value) else "float"
    if isinstance(attribute_type, AttributeType) and attribute_type in _STATIC_PREFIXES:
        return _STATIC_PREFIXES[attribute_type]
    raise SchemaError.unknown_attribute_type("<unknown>", attribute_type)


def _date_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _json_default(value: Any) -> str:
    return str(_date_value(value))


def _flatten_attributes(
    bag: dict[str, Any],
    schema: Sequence[AttributeDefinition],
) -> dict[str, Any]:
    flattened: dict[str, Any] = {}
    for definition in schema:
        if definition.name not in bag:
            continue
        value = bag[definition.name]

        if definition.type == AttributeType.SPECIAL:
            flattened[f"string_{definition.name}"] = json.dumps(
                value, separators=(",", ":"), ensure_ascii=False, default=_json_default
            )
            continue

        # Non-special attributes are maps of source -> value with a "default" entry
        values = value if isinstance(value, dict) else {DEFAULT_KEY: value}
        try:
            prefix = attribute_type_to_prefix(values.get(DEFAULT_KEY, _MISSING), definition.type)
        except SchemaError:
            raise SchemaError.unknown_attribute_type(definition.name, definition.type) from None
        flattened[f"obj_{definition.name}"] = {
            f"{prefix}_{key}": _date_value(sub_value) for key, sub_value in values.items()
        }
    return flattened


def _flatten_segment(snapshot: SegmentMemberSnapshot) -> dict[str, Any]:
    return {
        "uuid_segmentId": snapshot.segment_id,
        "obj_arr_organizations": [
            {
                "uuid_id": organization.id,
                "string_logo": organization.logo,
                "string_displayName": organization.display_name,
            }
            for organization in snapshot.organizations
        ],
        "obj_arr_tags": [{"uuid_id": tag.id, "string_name": tag.name} for tag in snapshot.tags],
        "string_arr_activeOn": list(snapshot.active_on),
        "int_activityCount": snapshot.activity_count,
        "string_arr_activityTypes": list(snapshot.activity_types),
        "int_activeDaysCount": snapshot.active_days_count,
        "date_lastActive": _date_value(snapshot.last_active),
        "float_averageSentiment": snapshot.average_sentiment,
    }


def flatten(
    snapshots: Sequence[SegmentMemberSnapshot],
    schema: Iterable[AttributeDefinition],
) -> FlattenedDocument:
    """Build the index document for one member from all of its segment snapshots.

    Segment-invariant fields come from the first snapshot; they are assumed,
    not checked, to be identical across the member's snapshots. Each snapshot
    contributes one entry to ``obj_arr_segments``.

    Args:
        snapshots: Non-empty, ordered snapshots of a single member.
        schema: The tenant's attribute definitions.

    Raises:
        ValueError: No snapshots were given.
        SchemaError: Any definition declares a type outside AttributeType.
    """
    if not snapshots:
        raise ValueError("flatten() requires at least one snapshot")
    definitions = normalize_schema(schema)

    data = snapshots[0]
    return {
        "uuid_memberId": data.id,
        "uuid_tenantId": data.tenant_id,
        "string_displayName": data.display_name,
        "obj_attributes": _flatten_attributes(data.attributes or {}, definitions),
        "string_arr_emails": list(data.emails or []),
        "int_score": data.score,
        "date_lastEnriched": _date_value(data.last_enriched),
        "date_joinedAt": _date_value(data.joined_at),
        "int_totalReach": data.total_reach,
        "int_numberOfOpenSourceContributions": data.number_of_open_source_contributions,
        "obj_arr_identities": [
            {"string_platform": identity.platform, "string_username": identity.username}
            for identity in data.identities
        ],
        "uuid_arr_toMergeIds": list(data.to_merge_ids),
        "uuid_arr_noMergeIds": list(data.no_merge_ids),
        "obj_arr_segments": [_flatten_segment(snapshot) for snapshot in snapshots],
    }


def group_by_member(
    snapshots: Iterable[SegmentMemberSnapshot],
) -> dict[str, list[SegmentMemberSnapshot]]:
    """Group snapshots by member id, keeping first-seen member and row order."""
    grouped: dict[str, list[SegmentMemberSnapshot]] = {}
    for snapshot in snapshots:
        grouped.setdefault(snapshot.id, []).append(snapshot)
    return grouped
