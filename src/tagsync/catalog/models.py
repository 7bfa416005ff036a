"""Catalog record models."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ExternalId(BaseModel):
    """Link between a catalog tag and an external database entry."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    endpoint: str = ""
    stash_id: str


class Tag(BaseModel):
    """A tag record as returned by the catalog.

    Attributes:
        id: Catalog identifier of the tag.
        name: Display name; the source of the tag's normalized filename.
        aliases: Alternative names.
        image_url: URL of the tag's canonical image or video.
        ignore_auto_tag: Catalog-side flag excluding the tag from auto tagging.
        external_ids: Links to external databases.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = ""
    name: str
    aliases: List[str] = Field(default_factory=list)
    image_url: str = Field(default="", alias="image_path")
    ignore_auto_tag: bool = False
    external_ids: List[ExternalId] = Field(default_factory=list, alias="stash_ids")

    @field_validator("aliases", "external_ids", mode="before")
    @classmethod
    def _none_as_empty(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: object) -> object:
        return "" if value is None else str(value)

    @property
    def external_id(self) -> Optional[str]:
        """Return the first external identifier, if any."""
        return self.external_ids[0].stash_id if self.external_ids else None


__all__ = ["ExternalId", "Tag"]
