"""Configuration models describing tagsync settings."""

from __future__ import annotations

import re
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_DAILY_AT_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class TagsyncBaseModel(BaseModel):
    """Shared configuration for tagsync Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class CatalogSettings(TagsyncBaseModel):
    """Connection settings for the remote tag catalog.

    Attributes:
        endpoint: GraphQL endpoint of the catalog server.
        api_key: Optional API key sent with every catalog and media request.
        timeout_seconds: Timeout applied to each HTTP request.
        verify_tls: Whether TLS certificates are verified.
    """

    endpoint: str = "http://localhost:9999/graphql"
    api_key: Optional[str] = None
    timeout_seconds: float = 30.0
    verify_tls: bool = True


class StorageSettings(TagsyncBaseModel):
    """Filesystem locations used by the engine.

    Attributes:
        asset_dir: Directory holding one media file per tag.
        cache_dir: Directory holding validator, sync-state, and snapshot caches.
        export_path: Optional inventory export location; defaults inside cache_dir.
    """

    asset_dir: str = "./tags"
    cache_dir: str = "./cache"
    export_path: Optional[str] = None


class SyncOptions(TagsyncBaseModel):
    """Options governing per-tag reconciliation.

    Attributes:
        recheck_validators: Revalidate every cached asset with a conditional request.
        force_refresh: Download every tag regardless of local state.
        full_scan: Ignore the last-sync filter and treat every tag as new.
        delete_existing: Remove the stale local file when a tag's image URL changes.
        excluded_prefixes: Tag name prefixes that mark a tag as ignored.
        default_image_marker: URL fragment identifying a placeholder image.
    """

    recheck_validators: bool = False
    force_refresh: bool = False
    full_scan: bool = False
    delete_existing: bool = False
    excluded_prefixes: List[str] = Field(default_factory=list)
    default_image_marker: str = "default=true"


class ScheduleSettings(TagsyncBaseModel):
    """Daily trigger configuration.

    Attributes:
        enabled: Whether `tagsync serve` starts the daily scheduler.
        daily_at: Local wall-clock time (HH:MM) of the daily run.
    """

    enabled: bool = True
    daily_at: str = "03:00"

    @field_validator("daily_at")
    @classmethod
    def _validate_daily_at(cls, value: str) -> str:
        if not _DAILY_AT_PATTERN.match(value):
            raise ValueError("daily_at must use the 24-hour HH:MM format")
        return value


class ServerSettings(TagsyncBaseModel):
    """Trigger server bind options."""

    host: str = "127.0.0.1"
    port: int = 8080


class LoggingSettings(TagsyncBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging verbosity level.
        max_size_mb: Maximum log size before rotation.
        backup_count: Number of historical log files to retain.
    """

    level: str = "INFO"
    max_size_mb: int = 10
    backup_count: int = 5


class TagsyncConfig(TagsyncBaseModel):
    """Top-level configuration struct for tagsync.

    Attributes:
        catalog: Remote catalog connection settings.
        storage: Asset and cache locations.
        sync: Reconciliation options.
        schedule: Daily trigger settings.
        server: Trigger server settings.
        logging: Logging configuration.
    """

    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    sync: SyncOptions = Field(default_factory=SyncOptions)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


__all__ = [
    "TagsyncBaseModel",
    "CatalogSettings",
    "StorageSettings",
    "SyncOptions",
    "ScheduleSettings",
    "ServerSettings",
    "LoggingSettings",
    "TagsyncConfig",
]
