"""Config module exports."""

from membersync.config.loader import load_config
from membersync.config.models import (
    DatabaseConfig,
    LoggingConfig,
    LogOutputConfig,
    MemberSyncConfig,
    SearchConfig,
    SyncConfig,
)

__all__ = [
    "DatabaseConfig",
    "LogOutputConfig",
    "LoggingConfig",
    "MemberSyncConfig",
    "SearchConfig",
    "SyncConfig",
    "load_config",
]
