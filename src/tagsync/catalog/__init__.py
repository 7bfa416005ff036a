"""Remote tag catalog access."""

from .client import FIND_TAGS_QUERY, CatalogClient, CatalogError
from .models import ExternalId, Tag

__all__ = ["CatalogClient", "CatalogError", "ExternalId", "FIND_TAGS_QUERY", "Tag"]
