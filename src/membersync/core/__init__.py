"""Core module exports."""

from membersync.core.errors import (
    ConfigError,
    ErrorCode,
    InternalError,
    MemberSyncError,
    SchemaError,
    SearchIndexError,
    StoreError,
)
from membersync.core.logging import (
    clear_run_id,
    configure_logging,
    get_logger,
    get_run_id,
    log_execution_time,
    set_run_id,
)

__all__ = [
    # Errors
    "ConfigError",
    "ErrorCode",
    "InternalError",
    "MemberSyncError",
    "SchemaError",
    "SearchIndexError",
    "StoreError",
    # Logging
    "clear_run_id",
    "configure_logging",
    "get_logger",
    "get_run_id",
    "log_execution_time",
    "set_run_id",
]
