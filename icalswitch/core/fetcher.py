"""HTTP client for downloading the ICS feed."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from ..exceptions import ConfigError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 25.0

# Browser-like headers; some providers (e.g. Office365) reject obvious bots
DEFAULT_BROWSER_HEADERS: dict[str, str] = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/calendar, text/plain, application/octet-stream, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}


@dataclass(frozen=True)
class FeedResponse:
    """Status code and decoded body of one fetch."""

    status_code: int
    text: str

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


def validate_feed_url(url: Optional[str]) -> str:
    """Return the stripped URL, or raise ConfigError when it is unusable."""
    cleaned = (url or "").strip()
    if not cleaned:
        raise ConfigError("ICS URL is empty")

    parsed = urlparse(cleaned)
    if parsed.scheme not in ("http", "https"):
        raise ConfigError(f"Invalid URL scheme: {parsed.scheme or 'none'}", "Invalid ICS URL")
    if not parsed.hostname:
        raise ConfigError("URL missing hostname", "Invalid ICS URL")
    return cleaned


class FeedFetcher:
    """Async feed downloader over httpx.

    One request per fetch with a fixed timeout and no retries; a failed fetch
    is retried by the next scheduled run. Use as an async context manager or
    call close() when done. An injected client is never closed here.
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> FeedFetcher:
        self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                follow_redirects=True,
                headers=DEFAULT_BROWSER_HEADERS,
            )
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Closed feed HTTP client")
        if self._owns_client:
            self._client = None

    async def fetch(self, url: str) -> FeedResponse:
        """Download the feed.

        Args:
            url: http(s) URL of the ICS feed

        Returns:
            FeedResponse with whatever status the server answered

        Raises:
            ConfigError: URL is empty, not http(s), or has no hostname
            TransportError: Timeout or connection failure
        """
        target = validate_feed_url(url)
        client = self._ensure_client()

        logger.debug("Fetching ICS from %s", target)
        try:
            response = await client.get(target, timeout=self.timeout_seconds)
        except httpx.TimeoutException as e:
            raise TransportError(f"Timeout after {self.timeout_seconds:g}s: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

        return FeedResponse(status_code=response.status_code, text=response.text)
