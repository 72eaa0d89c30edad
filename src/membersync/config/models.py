"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (MEMBERSYNC__SECTION__KEY)
3. Config YAML (./membersync.yaml or an explicit path)
4. Global YAML (~/.config/membersync/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    MEMBERSYNC__<SECTION>__<KEY>=<VALUE>

Examples:
    MEMBERSYNC__LOGGING__LEVEL=DEBUG
    MEMBERSYNC__SYNC__BATCH_SIZE=200
    MEMBERSYNC__SEARCH__URL=https://opensearch.internal:9200
    MEMBERSYNC__DATABASE__URL=postgresql+psycopg://crowd@db/crowd
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        MEMBERSYNC__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every incremental sync call.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class SyncConfig(BaseModel):
    """Synchronization tuning.

    Env vars:
        MEMBERSYNC__SYNC__BATCH_SIZE: Pending ids claimed per full-resync batch
        MEMBERSYNC__SYNC__RETRY_LIMIT: Retries for a member not yet visible in the store
        MEMBERSYNC__SYNC__RETRY_DELAY_SEC: Fixed delay between those retries
        MEMBERSYNC__SYNC__CLEANUP_PAGE_SIZE: Index documents scanned per cleanup page
    """

    batch_size: int = Field(
        default=500,
        description="Pending member ids claimed and bulk-written per batch.",
    )
    retry_limit: int = Field(
        default=5,
        description="Retries after the initial lookup before a missing member is "
        "treated as deleted. Worst-case latency is retry_limit * retry_delay_sec.",
    )
    retry_delay_sec: float = Field(
        default=0.1,
        description="Constant delay between incremental sync retries.",
    )
    cleanup_page_size: int = Field(
        default=500,
        description="Documents fetched per page while scanning the index for orphans.",
    )

    @field_validator("batch_size", "cleanup_page_size")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Must be positive, got {v}")
        return v

    @field_validator("retry_limit")
    @classmethod
    def validate_retry_limit(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Must be >= 0, got {v}")
        return v

    @field_validator("retry_delay_sec")
    @classmethod
    def validate_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"Must be >= 0, got {v}")
        return v


class SearchConfig(BaseModel):
    """Search index (OpenSearch) connection configuration.

    Env vars:
        MEMBERSYNC__SEARCH__URL: Cluster base URL
        MEMBERSYNC__SEARCH__MEMBERS_INDEX: Index (or alias) holding member documents
        MEMBERSYNC__SEARCH__USERNAME / MEMBERSYNC__SEARCH__PASSWORD: Basic auth
    """

    url: str = Field(default="http://localhost:9200", description="Cluster base URL.")
    members_index: str = Field(default="members", description="Member documents index.")
    username: str | None = None
    password: str | None = None
    timeout_sec: float = Field(
        default=30.0,
        description="Per-request timeout applied by the HTTP client.",
    )
    refresh: bool = Field(
        default=False,
        description="Request an index refresh on every write. "
        "RISK: Expensive on large clusters; intended for tests and local development.",
    )


class DatabaseConfig(BaseModel):
    """Relational member store configuration.

    Env vars:
        MEMBERSYNC__DATABASE__URL: SQLAlchemy database URL
        MEMBERSYNC__DATABASE__ECHO: Log emitted SQL
    """

    url: str = Field(
        default="sqlite:///membersync.db",
        description="SQLAlchemy URL of the member store.",
    )
    echo: bool = Field(default=False, description="Echo SQL statements (very verbose).")


class MemberSyncConfig(BaseModel):
    """Root configuration for MemberSync.

    All settings can be configured via:
    1. Environment variables: MEMBERSYNC__SECTION__KEY
    2. YAML config files (local or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
