"""HTTP download of tag assets with conditional requests."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests

LOGGER = logging.getLogger(__name__)

CHUNK_SIZE = 1 << 16


@dataclass(slots=True)
class FetchResult:
    """Outcome of one asset request.

    Attributes:
        modified: False when the server answered ``304 Not Modified``.
        etag: Validator returned by the server, if any.
        content_type: Declared media type of the body.
        path: File the body was written to; ``None`` when unmodified.
    """

    modified: bool
    etag: Optional[str] = None
    content_type: Optional[str] = None
    path: Optional[Path] = None


class AssetFetcher:
    """Download tag media, optionally guarded by an ``If-None-Match`` token."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        verify_tls: bool = True,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.verify_tls = verify_tls
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def close(self) -> None:
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None

    def fetch(self, url: str, destination: Path, *, token: Optional[str] = None) -> FetchResult:
        """Request ``url`` and stream a new body to ``destination``.

        Args:
            url: Asset URL.
            destination: File receiving the body; overwritten when present.
            token: Cached validator sent as an ``If-None-Match`` precondition.

        Returns:
            FetchResult: Whether content changed, plus the response validator.

        Raises:
            requests.RequestException: On transport failures or error statuses.
            OSError: If the body cannot be written.
        """
        headers: dict[str, str] = {}
        if self.api_key:
            headers["ApiKey"] = self.api_key
        if token:
            headers["If-None-Match"] = token

        with self.session.get(
            url,
            headers=headers,
            stream=True,
            timeout=self.timeout,
            verify=self.verify_tls,
        ) as resp:
            etag = resp.headers.get("ETag")
            if resp.status_code == 304:
                LOGGER.debug("Not modified: %s", url)
                return FetchResult(modified=False, etag=etag)
            resp.raise_for_status()

            destination.parent.mkdir(parents=True, exist_ok=True)
            try:
                with destination.open("wb") as handle:
                    for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            handle.write(chunk)
            except (requests.RequestException, OSError):
                destination.unlink(missing_ok=True)
                raise

            return FetchResult(
                modified=True,
                etag=etag,
                content_type=resp.headers.get("Content-Type"),
                path=destination,
            )


__all__ = ["AssetFetcher", "FetchResult"]
