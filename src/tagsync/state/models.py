"""Persisted cache models for tag synchronization."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ValidatorCache(BaseModel):
    """URL to conditional-fetch token mapping.

    Tokens only describe which representation of a URL was last seen; they say
    nothing authoritative about the local file content.
    """

    entries: Dict[str, str] = Field(default_factory=dict)

    def get(self, url: str) -> Optional[str]:
        """Return the cached token for a URL, if any."""
        return self.entries.get(url)

    def set(self, url: str, token: str) -> None:
        """Store or replace the token for a URL."""
        self.entries[url] = token

    def __contains__(self, url: object) -> bool:
        return url in self.entries

    def __len__(self) -> int:
        return len(self.entries)


class SyncState(BaseModel):
    """Timestamp of the last successful synchronization run."""

    model_config = ConfigDict(populate_by_name=True)

    last_sync: Optional[datetime] = Field(default=None, alias="lastSync")

    @property
    def since(self) -> datetime:
        """Return the last sync time, treating a first run as epoch zero."""
        if self.last_sync is None:
            return EPOCH
        if self.last_sync.tzinfo is None:
            return self.last_sync.replace(tzinfo=timezone.utc)
        return self.last_sync


__all__ = ["EPOCH", "SyncState", "ValidatorCache"]
