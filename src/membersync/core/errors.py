"""MemberSync error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Schema
- 4xxx: Search index
- 5xxx: Member store
- 9xxx: Internal
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_FILE_NOT_FOUND = 2004

    # Schema (3xxx)
    SCHEMA_UNKNOWN_ATTRIBUTE_TYPE = 3001
    SCHEMA_INVALID_DEFINITION = 3002

    # Search index (4xxx)
    INDEX_REQUEST_FAILED = 4001
    INDEX_BULK_ITEM_FAILED = 4002

    # Member store (5xxx)
    STORE_QUERY_FAILED = 5001

    # Internal (9xxx)
    INTERNAL_ERROR = 9001


@dataclass(frozen=True, slots=True)
class MemberSyncError(Exception):
    """Base error with structured context for operators."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'SCHEMA_UNKNOWN_ATTRIBUTE_TYPE')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logs and worker responses."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(MemberSyncError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class SchemaError(MemberSyncError):
    """Member attribute schema errors. Never retryable."""

    @classmethod
    def unknown_attribute_type(cls, name: str, attribute_type: Any) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_UNKNOWN_ATTRIBUTE_TYPE,
            message=f"Could not map attribute type: {attribute_type} of attribute '{name}'",
            details={"attribute": name, "type": str(attribute_type)},
        )

    @classmethod
    def invalid_definition(cls, raw: Any, reason: str) -> "SchemaError":
        return cls(
            code=ErrorCode.SCHEMA_INVALID_DEFINITION,
            message=f"Invalid attribute definition: {reason}",
            details={"definition": str(raw), "reason": reason},
        )


class SearchIndexError(MemberSyncError):
    """Search index request failures."""

    @classmethod
    def request_failed(
        cls, method: str, path: str, status: int | None, body: str
    ) -> "SearchIndexError":
        return cls(
            code=ErrorCode.INDEX_REQUEST_FAILED,
            message=f"{method} {path} failed with status {status}",
            retryable=status is None or status >= 500,
            details={"method": method, "path": path, "status": status, "body": body[:2000]},
        )

    @classmethod
    def bulk_item_failed(cls, index: str, failures: list[dict[str, Any]]) -> "SearchIndexError":
        return cls(
            code=ErrorCode.INDEX_BULK_ITEM_FAILED,
            message=f"Bulk write to '{index}' rejected {len(failures)} document(s)",
            details={"index": index, "failures": failures[:20]},
        )


class StoreError(MemberSyncError):
    """Member store query failures."""

    @classmethod
    def query_failed(cls, operation: str, reason: str) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_QUERY_FAILED,
            message=f"Member store operation '{operation}' failed: {reason}",
            retryable=True,
            details={"operation": operation, "reason": reason},
        )


class InternalError(MemberSyncError):
    """Internal/unexpected errors."""

    @classmethod
    def unexpected(cls, reason: str, **details: Any) -> "InternalError":
        return cls(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Internal error: {reason}",
            details=details,
        )
