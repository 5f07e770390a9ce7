"""
Configuration Schemas.

Pydantic models defining the expected structure of each YAML config file.
Used by AppConfig to validate configuration at load time. If a YAML file
has missing keys, wrong types, or unknown fields, a clear ValidationError
is raised at startup instead of a cryptic KeyError deep in application code.

Each top-level class corresponds to one file in config/settings/:
    ApplicationSchema  → application.yaml
    LoggingSchema      → logging.yaml
    StorageSchema      → storage.yaml
    SyncSchema         → sync.yaml
    RemindersSchema    → reminders.yaml
"""

from pydantic import BaseModel, ConfigDict, Field


class _StrictBase(BaseModel):
    """Base with extra='forbid' so unknown YAML keys are caught immediately."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ApplicationSchema(_StrictBase):
    name: str
    version: str
    description: str
    environment: str
    debug: bool
    share_base_url: str


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool


class FileHandlerSchema(_StrictBase):
    enabled: bool
    path: str
    max_bytes: int
    backup_count: int


class HandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_StrictBase):
    level: str
    format: str
    handlers: HandlersSchema


# =============================================================================
# storage.yaml
# =============================================================================


class StorageSchema(_StrictBase):
    snapshot_path: str
    max_bytes: int = Field(gt=0)
    quarantine_corrupt: bool


# =============================================================================
# sync.yaml
# =============================================================================


class SyncCircuitBreakerSchema(_StrictBase):
    fail_max: int
    timeout_duration: int


class SyncSchema(_StrictBase):
    enabled: bool
    endpoint: str
    timeout_seconds: float
    interval_seconds: int = Field(gt=0)
    circuit_breaker: SyncCircuitBreakerSchema


# =============================================================================
# reminders.yaml
# =============================================================================


class RemindersSchema(_StrictBase):
    scan_interval_seconds: int = Field(gt=0)
