"""GraphQL client for the remote tag catalog."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

import requests
from pydantic import ValidationError

from .models import Tag

LOGGER = logging.getLogger(__name__)

FIND_TAGS_QUERY = """
query FindTags($tag_filter: TagFilterType) {
  findTags(filter: { per_page: -1 }, tag_filter: $tag_filter) {
    tags {
      id
      name
      aliases
      image_path
      ignore_auto_tag
      stash_ids {
        endpoint
        stash_id
      }
    }
  }
}
"""


class CatalogError(Exception):
    """Raised when the catalog cannot be queried."""


class CatalogClient:
    """Query tag records from a Stash-compatible GraphQL endpoint."""

    def __init__(
        self,
        endpoint: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        verify_tls: bool = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self.verify_tls = verify_tls
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> requests.Session:
        """Return the HTTP session, creating one on first use."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def auth_headers(self) -> dict[str, str]:
        """Return headers authenticating against the catalog server."""
        return {"ApiKey": self.api_key} if self.api_key else {}

    def close(self) -> None:
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None

    def __enter__(self) -> CatalogClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def find_tags(self, *, updated_since: Optional[datetime] = None) -> list[Tag]:
        """Return every tag, or only those updated after ``updated_since``.

        Args:
            updated_since: Optional lower bound on the tags' update time.

        Returns:
            list[Tag]: Tag records in catalog order.

        Raises:
            CatalogError: If the transport fails or the response is malformed.
        """
        variables: dict[str, Any] = {"tag_filter": None}
        if updated_since is not None:
            variables["tag_filter"] = {
                "updated_at": {"value": updated_since.isoformat(), "modifier": "GREATER_THAN"}
            }

        payload = self._execute(FIND_TAGS_QUERY, variables)
        try:
            records = payload["findTags"]["tags"]
        except (KeyError, TypeError) as exc:
            raise CatalogError(f"Unexpected catalog response shape: {exc!r}") from exc

        try:
            tags = [Tag.model_validate(record) for record in records]
        except ValidationError as exc:
            raise CatalogError(f"Invalid tag record in catalog response: {exc}") from exc

        LOGGER.debug(
            "Catalog returned %d tag(s)%s",
            len(tags),
            f" updated since {updated_since.isoformat()}" if updated_since else "",
        )
        return tags

    def _execute(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            resp = self.session.post(
                self.endpoint,
                json={"query": query, "variables": variables},
                headers=self.auth_headers(),
                timeout=self.timeout,
                verify=self.verify_tls,
            )
            resp.raise_for_status()
            body = resp.json()
        except requests.RequestException as exc:
            raise CatalogError(f"Catalog request to {self.endpoint} failed: {exc}") from exc
        except ValueError as exc:
            raise CatalogError(f"Catalog returned invalid JSON: {exc}") from exc

        if not isinstance(body, dict):
            raise CatalogError("Catalog response must be a JSON object.")
        errors = body.get("errors")
        if errors:
            messages = "; ".join(
                str(error.get("message", error)) if isinstance(error, dict) else str(error)
                for error in errors
            )
            raise CatalogError(f"Catalog query failed: {messages}")
        data = body.get("data")
        if not isinstance(data, dict):
            raise CatalogError("Catalog response is missing the data object.")
        return data


__all__ = ["CatalogClient", "CatalogError", "FIND_TAGS_QUERY"]
