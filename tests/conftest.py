"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages,
and provides in-memory MemberStore / IndexClient doubles shared by the
sync, worker, and CLI tests.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local membersync package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

from membersync.core.errors import SearchIndexError  # noqa: E402
from membersync.sync.attributes import AttributeDefinition  # noqa: E402
from membersync.sync.interfaces import IndexRequest, SearchHit  # noqa: E402
from membersync.sync.models import (  # noqa: E402
    FlattenedDocument,
    MemberIdentity,
    MemberOrganization,
    MemberTag,
    SegmentMemberSnapshot,
)


class FakeMemberStore:
    """In-memory MemberStore recording every call.

    ``lag`` maps a member id to the number of lookups that must miss before
    the member becomes visible, simulating replication lag.
    """

    def __init__(self) -> None:
        self.members: dict[str, list[SegmentMemberSnapshot]] = {}
        self.schemas: dict[str, list[AttributeDefinition]] = {}
        self.pending: dict[str, list[str]] = {}
        self.lag: dict[str, int] = {}
        self.calls: list[tuple[str, Any]] = []
        self.synced_batches: list[list[str]] = []

    def add_member(self, *snapshots: SegmentMemberSnapshot) -> None:
        self.members.setdefault(snapshots[0].id, []).extend(snapshots)

    def delete_member(self, member_id: str) -> None:
        self.members.pop(member_id, None)

    def _tenant_ids(self, tenant_id: str) -> list[str]:
        return sorted(
            member_id
            for member_id, rows in self.members.items()
            if rows[0].tenant_id == tenant_id
        )

    async def set_pending_queue(self, tenant_id: str) -> None:
        self.calls.append(("set_pending_queue", tenant_id))
        self.pending[tenant_id] = self._tenant_ids(tenant_id)

    async def claim_pending(self, tenant_id: str, page: int, page_size: int) -> list[str]:
        self.calls.append(("claim_pending", (tenant_id, page, page_size)))
        queue = self.pending.get(tenant_id, [])
        start = (page - 1) * page_size
        return queue[start : start + page_size]

    async def fetch_snapshots(self, member_ids: Sequence[str]) -> list[SegmentMemberSnapshot]:
        self.calls.append(("fetch_snapshots", list(member_ids)))
        rows: list[SegmentMemberSnapshot] = []
        for member_id in member_ids:
            if self.lag.get(member_id, 0) > 0:
                self.lag[member_id] -= 1
                continue
            rows.extend(self.members.get(member_id, []))
        return rows

    async def fetch_attribute_schema(self, tenant_id: str) -> list[AttributeDefinition]:
        self.calls.append(("fetch_attribute_schema", tenant_id))
        return list(self.schemas.get(tenant_id, []))

    async def mark_synced(self, member_ids: Sequence[str]) -> None:
        self.calls.append(("mark_synced", list(member_ids)))
        self.synced_batches.append(list(member_ids))
        for tenant_id, queue in self.pending.items():
            self.pending[tenant_id] = [m for m in queue if m not in member_ids]

    async def existing_ids(self, tenant_id: str, member_ids: Sequence[str]) -> list[str]:
        self.calls.append(("existing_ids", (tenant_id, list(member_ids))))
        return [
            member_id
            for member_id in member_ids
            if member_id in self.members and self.members[member_id][0].tenant_id == tenant_id
        ]

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


class FakeIndexClient:
    """In-memory IndexClient with OpenSearch-like search_after paging."""

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, FlattenedDocument]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail_bulk_on_call: int | None = None
        self.fail_delete_ids: set[str] = set()
        self._bulk_calls = 0

    def docs(self, index_name: str = "members") -> dict[str, FlattenedDocument]:
        return self.documents.setdefault(index_name, {})

    async def search(
        self,
        index_name: str,
        query: dict[str, Any],
        page_size: int,
        sort: list[dict[str, str]],
        cursor: Any = None,
        projected_fields: list[str] | None = None,
    ) -> list[SearchHit]:
        self.calls.append(("search", cursor))
        tenant_id = query["bool"]["filter"]["term"]["uuid_tenantId"]
        (sort_field,) = sort[0].keys()
        matching = [
            (doc_id, body)
            for doc_id, body in self.docs(index_name).items()
            if body.get("uuid_tenantId") == tenant_id
        ]
        matching.sort(key=lambda item: item[1].get(sort_field) or "")
        if cursor is not None:
            matching = [item for item in matching if (item[1].get(sort_field) or "") > cursor]
        hits = []
        for doc_id, body in matching[:page_size]:
            source = body if projected_fields is None else {
                key: body.get(key) for key in projected_fields
            }
            hits.append(SearchHit(id=doc_id, source=dict(source)))
        return hits

    async def bulk_write(self, index_name: str, requests: Sequence[IndexRequest]) -> None:
        self._bulk_calls += 1
        self.calls.append(("bulk_write", [request.id for request in requests]))
        if self.fail_bulk_on_call == self._bulk_calls:
            raise SearchIndexError.request_failed("POST", "/_bulk", 500, "boom")
        for request in requests:
            self.docs(index_name)[request.id] = request.body

    async def write(self, document_id: str, index_name: str, body: FlattenedDocument) -> None:
        self.calls.append(("write", document_id))
        self.docs(index_name)[document_id] = body

    async def delete(self, document_id: str, index_name: str) -> None:
        self.calls.append(("delete", document_id))
        if document_id in self.fail_delete_ids:
            raise SearchIndexError.request_failed(
                "DELETE", f"/{index_name}/_doc/{document_id}", 503, "unavailable"
            )
        self.docs(index_name).pop(document_id, None)

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


def make_snapshot(
    member_id: str = "m-1",
    tenant_id: str = "t-1",
    segment_id: str = "s-1",
    **overrides: Any,
) -> SegmentMemberSnapshot:
    values: dict[str, Any] = {
        "id": member_id,
        "tenant_id": tenant_id,
        "display_name": f"Member {member_id}",
        "emails": [f"{member_id}@example.com"],
        "score": 7,
        "joined_at": "2023-01-01T00:00:00+00:00",
        "last_enriched": None,
        "total_reach": 120,
        "number_of_open_source_contributions": 3,
        "attributes": {},
        "identities": [MemberIdentity(platform="github", username=member_id)],
        "to_merge_ids": [],
        "no_merge_ids": [],
        "segment_id": segment_id,
        "organizations": [MemberOrganization(id="org-1", display_name="Acme", logo=None)],
        "tags": [MemberTag(id="tag-1", name="vip")],
        "active_on": ["github"],
        "activity_count": 4,
        "activity_types": ["github:pull_request-opened"],
        "active_days_count": 2,
        "last_active": "2023-02-01T00:00:00+00:00",
        "average_sentiment": 0.5,
    }
    values.update(overrides)
    return SegmentMemberSnapshot(**values)


@pytest.fixture
def snapshot_factory() -> Callable[..., SegmentMemberSnapshot]:
    """Build SegmentMemberSnapshots with sensible defaults."""
    return make_snapshot


@pytest.fixture
def store() -> FakeMemberStore:
    return FakeMemberStore()


@pytest.fixture
def index() -> FakeIndexClient:
    return FakeIndexClient()
