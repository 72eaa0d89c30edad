"""Member search-index synchronization.

Exports:
- flatten / attribute_type_to_prefix: snapshot to document mapping
- SyncOrchestrator: full and incremental sync
- CleanupReconciler: orphan removal
- MemberStore / IndexClient: collaborator protocols
"""

from membersync.sync.attributes import (
    AttributeDefinition,
    AttributeType,
    parse_attribute_type,
    parse_schema,
)
from membersync.sync.cleanup import CleanupReconciler
from membersync.sync.flatten import attribute_type_to_prefix, flatten, group_by_member
from membersync.sync.interfaces import IndexClient, IndexRequest, MemberStore, SearchHit
from membersync.sync.models import (
    CleanupResult,
    FlattenedDocument,
    MemberIdentity,
    MemberOrganization,
    MemberSyncResult,
    MemberSyncState,
    MemberTag,
    SegmentMemberSnapshot,
    TenantSyncResult,
)
from membersync.sync.orchestrator import SyncOrchestrator

__all__ = [
    "AttributeDefinition",
    "AttributeType",
    "CleanupReconciler",
    "CleanupResult",
    "FlattenedDocument",
    "IndexClient",
    "IndexRequest",
    "MemberIdentity",
    "MemberOrganization",
    "MemberStore",
    "MemberSyncResult",
    "MemberSyncState",
    "MemberTag",
    "SearchHit",
    "SegmentMemberSnapshot",
    "SyncOrchestrator",
    "TenantSyncResult",
    "attribute_type_to_prefix",
    "flatten",
    "group_by_member",
    "parse_attribute_type",
    "parse_schema",
]
