"""Search-sync worker: routes queue messages to the sync drivers.

Each message is one independent run with its own correlation id. Runs
for different tenants or members may be handled concurrently; runs for
the same member id must be serialized by whoever consumes the queue.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, model_validator

from membersync.config.models import MemberSyncConfig
from membersync.core.errors import InternalError
from membersync.core.logging import clear_run_id, set_run_id
from membersync.search.client import OpenSearchIndexClient
from membersync.store.database import Database
from membersync.store.repository import SqlMemberStore
from membersync.sync.cleanup import CleanupReconciler
from membersync.sync.models import CleanupResult, MemberSyncResult, TenantSyncResult
from membersync.sync.orchestrator import SyncOrchestrator

logger = structlog.get_logger()


class SearchSyncMessageType(str, Enum):
    SYNC_MEMBER = "sync_member"
    SYNC_TENANT_MEMBERS = "sync_tenant_members"
    REMOVE_MEMBER = "remove_member"
    CLEANUP_TENANT_MEMBERS = "cleanup_tenant_members"


_MEMBER_MESSAGES = {SearchSyncMessageType.SYNC_MEMBER, SearchSyncMessageType.REMOVE_MEMBER}


class SearchSyncMessage(BaseModel):
    """A queued sync request."""

    type: SearchSyncMessageType
    tenant_id: str | None = Field(default=None, alias="tenantId")
    member_id: str | None = Field(default=None, alias="memberId")
    reset: bool = True
    batch_size: int | None = Field(default=None, alias="batchSize", gt=0)

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def check_target(self) -> SearchSyncMessage:
        if self.type in _MEMBER_MESSAGES:
            if not self.member_id:
                raise ValueError(f"{self.type.value} requires memberId")
        elif not self.tenant_id:
            raise ValueError(f"{self.type.value} requires tenantId")
        return self


HandleResult = TenantSyncResult | MemberSyncResult | CleanupResult | None


class SearchSyncWorker:
    """Dispatches SearchSyncMessages to the orchestrator and reconciler."""

    def __init__(self, orchestrator: SyncOrchestrator, reconciler: CleanupReconciler) -> None:
        self.orchestrator = orchestrator
        self.reconciler = reconciler

    async def handle(self, message: SearchSyncMessage | dict[str, Any]) -> HandleResult:
        """Handle one message.

        Raises:
            pydantic.ValidationError: A raw message is malformed.
            MemberSyncError: The run failed; the message should be redelivered.
        """
        if not isinstance(message, SearchSyncMessage):
            message = SearchSyncMessage.model_validate(message)

        run_id = set_run_id()
        log = logger.bind(
            message_type=message.type.value,
            tenant_id=message.tenant_id,
            member_id=message.member_id,
        )
        log.debug("message_received", run_id=run_id)
        try:
            if message.type == SearchSyncMessageType.SYNC_MEMBER:
                assert message.member_id is not None
                return await self.orchestrator.sync_member(message.member_id)
            if message.type == SearchSyncMessageType.REMOVE_MEMBER:
                assert message.member_id is not None
                await self.orchestrator.remove_member(message.member_id)
                return None
            if message.type == SearchSyncMessageType.SYNC_TENANT_MEMBERS:
                assert message.tenant_id is not None
                return await self.orchestrator.sync_tenant_members(
                    message.tenant_id, reset=message.reset, batch_size=message.batch_size
                )
            if message.type == SearchSyncMessageType.CLEANUP_TENANT_MEMBERS:
                assert message.tenant_id is not None
                return await self.reconciler.cleanup(message.tenant_id)
            raise InternalError.unexpected("unhandled message type", type=str(message.type))
        except Exception:
            log.exception("message_failed")
            raise
        finally:
            clear_run_id()


class WorkerContext:
    """Wires the worker from configuration and owns its connections.

    Usage::

        async with WorkerContext(config) as worker:
            await worker.handle({"type": "sync_member", "memberId": member_id})
    """

    def __init__(self, config: MemberSyncConfig) -> None:
        self.config = config
        self.db = Database(config.database.url, echo=config.database.echo)
        self.index = OpenSearchIndexClient.from_config(config.search)
        store = SqlMemberStore(self.db)
        self.worker = SearchSyncWorker(
            SyncOrchestrator(
                store,
                self.index,
                index_name=config.search.members_index,
                batch_size=config.sync.batch_size,
                retry_limit=config.sync.retry_limit,
                retry_delay_sec=config.sync.retry_delay_sec,
            ),
            CleanupReconciler(
                self.index,
                store,
                index_name=config.search.members_index,
                page_size=config.sync.cleanup_page_size,
            ),
        )

    async def __aenter__(self) -> SearchSyncWorker:
        return self.worker

    async def __aexit__(self, *exc_info: object) -> None:
        await self.index.aclose()
        self.db.dispose()
