"""Relational member store (SQLModel)."""

from membersync.store.database import Database
from membersync.store.models import (
    Member,
    MemberAttributeSetting,
    MemberIdentityRecord,
    MemberSegmentAggregate,
)
from membersync.store.repository import SqlMemberStore

__all__ = [
    "Database",
    "Member",
    "MemberAttributeSetting",
    "MemberIdentityRecord",
    "MemberSegmentAggregate",
    "SqlMemberStore",
]
