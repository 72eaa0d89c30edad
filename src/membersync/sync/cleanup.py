"""Orphan reconciliation for the member index.

Scans a tenant's documents in ascending ``date_joinedAt`` order, one page
at a time, and removes every document whose member no longer exists in the
store.

The next page starts strictly after the last ``date_joinedAt`` of the
current page. Documents sharing a join timestamp across a page boundary
can therefore be skipped; a pass is a close approximation, not an exact
reconciliation. Re-running is always safe.
"""

from __future__ import annotations

from typing import Any

import structlog

from membersync.sync.interfaces import IndexClient, MemberStore
from membersync.sync.models import CleanupResult

logger = structlog.get_logger()

DEFAULT_PAGE_SIZE = 500
SORT_FIELD = "date_joinedAt"


def tenant_query(tenant_id: str) -> dict[str, Any]:
    """Boolean filter matching every member document of a tenant."""
    return {"bool": {"filter": {"term": {"uuid_tenantId": tenant_id}}}}


class CleanupReconciler:
    """Removes index documents whose backing member is gone. Stateless."""

    def __init__(
        self,
        index: IndexClient,
        store: MemberStore,
        index_name: str = "members",
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.index = index
        self.store = store
        self.index_name = index_name
        self.page_size = page_size

    async def cleanup(self, tenant_id: str) -> CleanupResult:
        """Run one reconciliation pass over a tenant's documents.

        Removal failures are not caught: the pass stops at the first one,
        leaving orphans from earlier pages removed.

        Raises:
            SearchIndexError: A search or delete request failed.
        """
        log = logger.bind(tenant_id=tenant_id)
        log.warning("member_index_cleanup_started")
        result = CleanupResult(tenant_id=tenant_id)

        try:
            await self._scan(log, tenant_id, result)
        except Exception:
            log.error(
                "member_index_cleanup_failed",
                page=result.pages,
                processed=result.processed,
                removed=len(result.removed),
            )
            raise

        log.warning(
            "member_index_cleanup_finished",
            processed=result.processed,
            removed=len(result.removed),
        )
        return result

    async def _scan(self, log: Any, tenant_id: str, result: CleanupResult) -> None:
        query = tenant_query(tenant_id)
        sort = [{SORT_FIELD: "asc"}]
        include = [SORT_FIELD]

        hits = await self.index.search(
            self.index_name, query, self.page_size, sort, None, include
        )
        while hits:
            result.pages += 1
            ids = [hit.id for hit in hits]

            existing = set(await self.store.existing_ids(tenant_id, ids))
            orphans = [member_id for member_id in ids if member_id not in existing]

            if orphans:
                log.warning("orphans_found", page=result.pages, member_ids=orphans)
                for member_id in orphans:
                    log.warning("member_removed", member_id=member_id)
                    try:
                        await self.index.delete(member_id, self.index_name)
                    except Exception:
                        log.error("member_remove_failed", member_id=member_id)
                        raise
                    result.removed.append(member_id)

            result.processed += len(hits)
            log.info("cleanup_progress", processed=result.processed, page=result.pages)

            cursor = hits[-1].source.get(SORT_FIELD)
            if cursor is None:
                # Missing join dates sort last and cannot be paged past
                log.warning("cleanup_cursor_missing", member_id=hits[-1].id)
                break
            hits = await self.index.search(
                self.index_name, query, self.page_size, sort, cursor, include
            )
