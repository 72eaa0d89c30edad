"""SQL implementation of the MemberStore protocol.

Blocking SQLAlchemy work runs in the loop's default executor so the
async sync drivers only ever suspend on it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from functools import partial
from typing import Any, TypeVar

import structlog
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from membersync.core.errors import StoreError
from membersync.store.database import Database
from membersync.store.models import (
    Member,
    MemberAttributeSetting,
    MemberIdentityRecord,
    MemberSegmentAggregate,
)
from membersync.sync.attributes import AttributeDefinition, parse_schema
from membersync.sync.models import (
    MemberIdentity,
    MemberOrganization,
    MemberTag,
    SegmentMemberSnapshot,
)

logger = structlog.get_logger()

T = TypeVar("T")


def _active_members(tenant_id: str) -> Any:
    return select(Member.id).where(
        Member.tenant_id == tenant_id,
        col(Member.deleted_at).is_(None),
    )


class SqlMemberStore:
    """MemberStore backed by the ``members`` tables."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def _run(self, operation: str, fn: Callable[[], T]) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, fn)
        except SQLAlchemyError as e:
            raise StoreError.query_failed(operation, str(e)) from e

    # -- pending queue ---------------------------------------------------------

    async def set_pending_queue(self, tenant_id: str) -> None:
        await self._run("set_pending_queue", partial(self._set_pending_queue, tenant_id))

    def _set_pending_queue(self, tenant_id: str) -> None:
        with self.db.transaction() as session:
            result = session.execute(
                update(Member)
                .where(
                    col(Member.tenant_id) == tenant_id,
                    col(Member.deleted_at).is_(None),
                )
                .values(search_synced_at=None)
            )
        logger.info("pending_queue_reset", tenant_id=tenant_id, count=result.rowcount)

    async def claim_pending(self, tenant_id: str, page: int, page_size: int) -> list[str]:
        return await self._run(
            "claim_pending", partial(self._claim_pending, tenant_id, page, page_size)
        )

    def _claim_pending(self, tenant_id: str, page: int, page_size: int) -> list[str]:
        stmt = (
            _active_members(tenant_id)
            .where(col(Member.search_synced_at).is_(None))
            .order_by(col(Member.id))
            .offset((max(page, 1) - 1) * page_size)
            .limit(page_size)
        )
        with self.db.session() as session:
            return list(session.exec(stmt).all())

    async def mark_synced(self, member_ids: Sequence[str]) -> None:
        if not member_ids:
            return
        await self._run("mark_synced", partial(self._mark_synced, list(member_ids)))

    def _mark_synced(self, member_ids: list[str]) -> None:
        with self.db.transaction() as session:
            session.execute(
                update(Member)
                .where(col(Member.id).in_(member_ids))
                .values(search_synced_at=datetime.now(UTC))
            )

    # -- reads -----------------------------------------------------------------

    async def existing_ids(self, tenant_id: str, member_ids: Sequence[str]) -> list[str]:
        if not member_ids:
            return []
        return await self._run(
            "existing_ids", partial(self._existing_ids, tenant_id, list(member_ids))
        )

    def _existing_ids(self, tenant_id: str, member_ids: list[str]) -> list[str]:
        stmt = _active_members(tenant_id).where(col(Member.id).in_(member_ids))
        with self.db.session() as session:
            return list(session.exec(stmt).all())

    async def fetch_attribute_schema(self, tenant_id: str) -> list[AttributeDefinition]:
        rows = await self._run(
            "fetch_attribute_schema", partial(self._fetch_attribute_rows, tenant_id)
        )
        return parse_schema(rows)

    def _fetch_attribute_rows(self, tenant_id: str) -> list[dict[str, Any]]:
        stmt = (
            select(MemberAttributeSetting)
            .where(MemberAttributeSetting.tenant_id == tenant_id)
            .order_by(col(MemberAttributeSetting.id))
        )
        with self.db.session() as session:
            return [{"name": row.name, "type": row.type} for row in session.exec(stmt)]

    async def fetch_snapshots(self, member_ids: Sequence[str]) -> list[SegmentMemberSnapshot]:
        if not member_ids:
            return []
        return await self._run(
            "fetch_snapshots", partial(self._fetch_snapshots, list(member_ids))
        )

    def _fetch_snapshots(self, member_ids: list[str]) -> list[SegmentMemberSnapshot]:
        with self.db.session() as session:
            members = session.exec(
                select(Member)
                .where(col(Member.id).in_(member_ids), col(Member.deleted_at).is_(None))
                .order_by(col(Member.id))
            ).all()
            if not members:
                return []

            found = [member.id for member in members]
            identities = _identities_by_member(session, found)
            aggregates = _aggregates_by_member(session, found)

            snapshots: list[SegmentMemberSnapshot] = []
            for member in members:
                # A member with no segment activity still gets one segment-less snapshot
                for aggregate in aggregates.get(member.id) or [None]:
                    snapshots.append(
                        _to_snapshot(member, identities.get(member.id, []), aggregate)
                    )
            return snapshots


def _identities_by_member(
    session: Session, member_ids: list[str]
) -> dict[str, list[MemberIdentity]]:
    stmt = (
        select(MemberIdentityRecord)
        .where(col(MemberIdentityRecord.member_id).in_(member_ids))
        .order_by(col(MemberIdentityRecord.platform), col(MemberIdentityRecord.username))
    )
    grouped: dict[str, list[MemberIdentity]] = {}
    for row in session.exec(stmt):
        grouped.setdefault(row.member_id, []).append(
            MemberIdentity(platform=row.platform, username=row.username)
        )
    return grouped


def _aggregates_by_member(
    session: Session, member_ids: list[str]
) -> dict[str, list[MemberSegmentAggregate]]:
    stmt = (
        select(MemberSegmentAggregate)
        .where(col(MemberSegmentAggregate.member_id).in_(member_ids))
        .order_by(col(MemberSegmentAggregate.segment_id))
    )
    grouped: dict[str, list[MemberSegmentAggregate]] = {}
    for row in session.exec(stmt):
        grouped.setdefault(row.member_id, []).append(row)
    return grouped


def _to_snapshot(
    member: Member,
    identities: list[MemberIdentity],
    aggregate: MemberSegmentAggregate | None,
) -> SegmentMemberSnapshot:
    segment: dict[str, Any] = {}
    if aggregate is not None:
        segment = {
            "segment_id": aggregate.segment_id,
            "organizations": [
                MemberOrganization(
                    id=org["id"],
                    display_name=org.get("displayName"),
                    logo=org.get("logo"),
                )
                for org in aggregate.organizations or []
            ],
            "tags": [MemberTag(id=tag["id"], name=tag["name"]) for tag in aggregate.tags or []],
            "active_on": list(aggregate.active_on or []),
            "activity_count": aggregate.activity_count,
            "activity_types": list(aggregate.activity_types or []),
            "active_days_count": aggregate.active_days_count,
            "last_active": aggregate.last_active,
            "average_sentiment": aggregate.average_sentiment,
        }
    return SegmentMemberSnapshot(
        id=member.id,
        tenant_id=member.tenant_id,
        display_name=member.display_name,
        emails=list(member.emails or []),
        score=member.score,
        joined_at=member.joined_at,
        last_enriched=member.last_enriched,
        total_reach=member.total_reach,
        number_of_open_source_contributions=member.number_of_open_source_contributions,
        attributes=dict(member.attributes or {}),
        identities=identities,
        to_merge_ids=list(member.to_merge_ids or []),
        no_merge_ids=list(member.no_merge_ids or []),
        **segment,
    )
