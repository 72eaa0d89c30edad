"""Member snapshot types and sync result records.

A SegmentMemberSnapshot is one (member, segment) view of a member as the
store returns it. Several snapshots share a member id and differ only in
their segment-scoped aggregates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# Type-prefixed, index-ready member document
FlattenedDocument = dict[str, Any]


@dataclass(frozen=True, slots=True)
class MemberIdentity:
    platform: str
    username: str


@dataclass(frozen=True, slots=True)
class MemberOrganization:
    id: str
    display_name: str | None = None
    logo: str | None = None


@dataclass(frozen=True, slots=True)
class MemberTag:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class SegmentMemberSnapshot:
    """One segment-scoped view of a member at sync time.

    Identity fields (display_name, emails, score, attributes, identities,
    merge ids, ...) are segment-invariant and expected to be identical
    across all snapshots of the same member. Only the fields after
    ``segment_id`` vary per segment.
    """

    id: str
    tenant_id: str
    display_name: str | None = None
    emails: list[str] | None = None
    score: int | None = None
    joined_at: datetime | str | None = None
    last_enriched: datetime | str | None = None
    total_reach: int | None = None
    number_of_open_source_contributions: int | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    identities: list[MemberIdentity] = field(default_factory=list)
    to_merge_ids: list[str] = field(default_factory=list)
    no_merge_ids: list[str] = field(default_factory=list)

    segment_id: str | None = None
    organizations: list[MemberOrganization] = field(default_factory=list)
    tags: list[MemberTag] = field(default_factory=list)
    active_on: list[str] = field(default_factory=list)
    activity_count: int = 0
    activity_types: list[str] = field(default_factory=list)
    active_days_count: int = 0
    last_active: datetime | str | None = None
    average_sentiment: float | None = None


class MemberSyncState(str, Enum):
    """Terminal state of an incremental member sync."""

    SYNCED = "synced"
    REMOVED = "removed"


@dataclass
class TenantSyncResult:
    """Result of a full tenant resync."""

    tenant_id: str
    synced: int = 0
    batches: int = 0
    duration_ms: float = 0.0


@dataclass
class MemberSyncResult:
    """Result of an incremental single-member sync."""

    member_id: str
    state: MemberSyncState
    attempts: int = 1


@dataclass
class CleanupResult:
    """Result of an orphan cleanup pass."""

    tenant_id: str
    processed: int = 0
    pages: int = 0
    removed: list[str] = field(default_factory=list)
