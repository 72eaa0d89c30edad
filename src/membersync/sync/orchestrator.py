"""Full and incremental member synchronization.

Full resync drains the tenant's pending queue in batches: claim ids, fetch
their snapshots, flatten, bulk write, then mark the batch synced. A batch
is only acknowledged after its bulk write succeeded, so a failed run can be
resumed with ``reset=False`` without losing or duplicating work.

Incremental sync handles one member. A member missing from the store is
assumed to be replication lag and retried with a fixed delay; once the
retry budget is spent the member is treated as deleted and removed from
the index.

INVARIANT: Calls for the same member id must be serialized by the caller.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping

import structlog

from membersync.core.logging import log_execution_time
from membersync.sync.flatten import flatten, group_by_member
from membersync.sync.interfaces import IndexClient, IndexRequest, MemberStore
from membersync.sync.models import MemberSyncResult, MemberSyncState, TenantSyncResult

logger = structlog.get_logger()

DEFAULT_BATCH_SIZE = 500
DEFAULT_RETRY_LIMIT = 5
DEFAULT_RETRY_DELAY_SEC = 0.1


class SyncOrchestrator:
    """Drives member documents from the store into the search index. Stateless."""

    def __init__(
        self,
        store: MemberStore,
        index: IndexClient,
        index_name: str = "members",
        batch_size: int = DEFAULT_BATCH_SIZE,
        retry_limit: int = DEFAULT_RETRY_LIMIT,
        retry_delay_sec: float = DEFAULT_RETRY_DELAY_SEC,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = store
        self.index = index
        self.index_name = index_name
        self.batch_size = batch_size
        self.retry_limit = retry_limit
        self.retry_delay_sec = retry_delay_sec
        self._sleep = sleep

    async def sync_tenant_members(
        self,
        tenant_id: str,
        reset: bool = True,
        batch_size: int | None = None,
    ) -> TenantSyncResult:
        """Sync every pending member of a tenant.

        Args:
            tenant_id: Tenant to sync.
            reset: Requeue all of the tenant's members first. Discards any
                   progress of an earlier interrupted run.
            batch_size: Ids claimed per batch (default: constructor value).

        Returns:
            TenantSyncResult with the number of documents written.

        Raises:
            SchemaError: The tenant's attribute schema cannot be mapped.
            SearchIndexError: A bulk write failed. Earlier batches stay synced.
        """
        size = self.batch_size if batch_size is None else batch_size
        if size <= 0:
            raise ValueError(f"batch_size must be positive, got {size}")

        log = logger.bind(tenant_id=tenant_id)
        log.warning("tenant_sync_started", reset=reset, batch_size=size)
        result = TenantSyncResult(tenant_id=tenant_id)
        start = time.perf_counter()

        with log_execution_time(log, "sync_tenant_members"):
            if reset:
                await self.store.set_pending_queue(tenant_id)

            schema = await self.store.fetch_attribute_schema(tenant_id)

            # Synced ids leave the queue, so the first page is always the next batch
            member_ids = await self.store.claim_pending(tenant_id, 1, size)
            while member_ids:
                result.batches += 1
                grouped = group_by_member(await self.store.fetch_snapshots(member_ids))

                if grouped:
                    prepared = [
                        IndexRequest(id=member_id, body=flatten(snapshots, schema))
                        for member_id, snapshots in grouped.items()
                    ]
                    try:
                        await self.index.bulk_write(self.index_name, prepared)
                    except Exception:
                        log.error(
                            "bulk_write_failed",
                            batch=result.batches,
                            member_ids=list(grouped),
                        )
                        raise
                    result.synced += len(prepared)

                # Claimed ids without rows have nothing to index; acknowledge them too
                await self.store.mark_synced(_claimed_order(member_ids, grouped))

                log.info("members_synced", count=result.synced, batch=result.batches)
                member_ids = await self.store.claim_pending(tenant_id, 1, size)

        result.duration_ms = round((time.perf_counter() - start) * 1000, 2)
        log.info("tenant_sync_finished", total=result.synced, batches=result.batches)
        return result

    async def sync_member(self, member_id: str) -> MemberSyncResult:
        """Sync a single member, removing it from the index if it no longer exists.

        The store is queried once plus up to ``retry_limit`` retries, each
        after a fixed ``retry_delay_sec`` pause. Exhausting the budget is not
        an error: the member is resolved as deleted.

        Raises:
            SchemaError: The member's tenant schema cannot be mapped.
            SearchIndexError: The index write or delete failed.
        """
        log = logger.bind(member_id=member_id)
        log.debug("member_sync_started")

        for attempt in range(self.retry_limit + 1):
            try:
                snapshots = await self.store.fetch_snapshots([member_id])
                if snapshots:
                    schema = await self.store.fetch_attribute_schema(snapshots[0].tenant_id)
                    document = flatten(snapshots, schema)
                    await self.index.write(member_id, self.index_name, document)
                    await self.store.mark_synced([member_id])
            except Exception:
                log.error("member_sync_failed", attempt=attempt + 1)
                raise

            if snapshots:
                log.debug("member_synced", attempts=attempt + 1)
                return MemberSyncResult(member_id, MemberSyncState.SYNCED, attempt + 1)

            if attempt < self.retry_limit:
                log.debug("member_not_found_retrying", attempt=attempt + 1)
                await self._sleep(self.retry_delay_sec)

        attempts = self.retry_limit + 1
        log.error("member_not_found_removing", attempts=attempts)
        await self.remove_member(member_id)
        return MemberSyncResult(member_id, MemberSyncState.REMOVED, attempts)

    async def remove_member(self, member_id: str) -> None:
        """Delete a member document from the index."""
        log = logger.bind(member_id=member_id)
        log.warning("member_removed")
        try:
            await self.index.delete(member_id, self.index_name)
        except Exception:
            log.error("member_remove_failed")
            raise


def _claimed_order(claimed: list[str], grouped: Mapping[str, object]) -> list[str]:
    """Written ids first (in write order), then claimed ids that had no rows."""
    return [*grouped, *(member_id for member_id in claimed if member_id not in grouped)]
