"""Collaborator protocols for the sync drivers.

The orchestrator and reconciler only depend on these protocols. The
relational store and the search index are injected at construction time.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from membersync.sync.attributes import AttributeDefinition
from membersync.sync.models import FlattenedDocument, SegmentMemberSnapshot


@dataclass(frozen=True, slots=True)
class SearchHit:
    """A single search result: document id plus the (projected) source."""

    id: str
    source: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class IndexRequest:
    """A document to write in a bulk request."""

    id: str
    body: FlattenedDocument


@runtime_checkable
class MemberStore(Protocol):
    """Relational member data plus the per-tenant pending-sync queue."""

    async def set_pending_queue(self, tenant_id: str) -> None:
        """Replace the tenant's pending queue with all of its member ids."""
        ...

    async def claim_pending(self, tenant_id: str, page: int, page_size: int) -> list[str]:
        """Return up to ``page_size`` pending member ids (1-based ``page``)."""
        ...

    async def fetch_snapshots(self, member_ids: Sequence[str]) -> list[SegmentMemberSnapshot]:
        """Return every segment snapshot of the given members, rows of a member adjacent."""
        ...

    async def fetch_attribute_schema(self, tenant_id: str) -> list[AttributeDefinition]:
        ...

    async def mark_synced(self, member_ids: Sequence[str]) -> None:
        """Remove ids from the pending queue. Idempotent."""
        ...

    async def existing_ids(self, tenant_id: str, member_ids: Sequence[str]) -> list[str]:
        """Return the subset of ``member_ids`` that still exist for the tenant."""
        ...


@runtime_checkable
class IndexClient(Protocol):
    """Search, write, and delete against the search index."""

    async def search(
        self,
        index_name: str,
        query: dict[str, Any],
        page_size: int,
        sort: list[dict[str, str]],
        cursor: Any = None,
        projected_fields: list[str] | None = None,
    ) -> list[SearchHit]:
        """Return one page of hits strictly after ``cursor`` in ``sort`` order."""
        ...

    async def bulk_write(self, index_name: str, requests: Sequence[IndexRequest]) -> None:
        ...

    async def write(self, document_id: str, index_name: str, body: FlattenedDocument) -> None:
        """Fully replace the document with ``document_id``."""
        ...

    async def delete(self, document_id: str, index_name: str) -> None:
        """Delete a document. Deleting a missing document is not an error."""
        ...
