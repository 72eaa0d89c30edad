"""SQLModel tables backing the member store.

Only the columns the sync engine reads are modelled. ``search_synced_at``
doubles as the pending-sync queue: a NULL value means the member is
waiting to be (re)indexed.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class Member(SQLModel, table=True):
    """A tenant member with its segment-invariant fields."""

    __tablename__ = "members"

    id: str = Field(primary_key=True)
    tenant_id: str = Field(index=True)
    display_name: str | None = None
    emails: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    score: int | None = None
    attributes: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    joined_at: datetime | None = Field(default=None, index=True)
    last_enriched: datetime | None = None
    total_reach: int | None = None
    number_of_open_source_contributions: int | None = None
    to_merge_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    no_merge_ids: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    search_synced_at: datetime | None = Field(default=None, index=True)
    deleted_at: datetime | None = None


class MemberIdentityRecord(SQLModel, table=True):
    """A platform identity (username on a platform) of a member."""

    __tablename__ = "member_identities"

    id: int | None = Field(default=None, primary_key=True)
    member_id: str = Field(foreign_key="members.id", index=True)
    platform: str
    username: str


class MemberSegmentAggregate(SQLModel, table=True):
    """Per-segment aggregates of a member. One row per (member, segment)."""

    __tablename__ = "member_segment_aggregates"

    member_id: str = Field(foreign_key="members.id", primary_key=True)
    segment_id: str = Field(primary_key=True)
    organizations: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    tags: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))
    active_on: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    activity_types: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    activity_count: int = 0
    active_days_count: int = 0
    last_active: datetime | None = None
    average_sentiment: float | None = None


class MemberAttributeSetting(SQLModel, table=True):
    """A tenant's declared member attribute."""

    __tablename__ = "member_attribute_settings"

    id: int | None = Field(default=None, primary_key=True)
    tenant_id: str = Field(index=True)
    name: str
    type: str
