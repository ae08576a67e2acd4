"""HTTP client for downloading ICS calendar feeds - calnotes version."""

import asyncio
import logging
import random
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from .calendar.models import CalendarSource
from .exceptions import TransportError

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 30.0
JITTER_MIN_FACTOR = 0.1
JITTER_MAX_FACTOR = 0.3

DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": "calnotes/1.0",
    "Accept": "text/calendar, text/plain, application/octet-stream, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}


def normalize_feed_url(url: str) -> str:
    """Rewrite webcal:// subscription links to https://."""
    url = url.strip()
    if url.lower().startswith("webcal://"):
        return "https://" + url[len("webcal://") :]
    return url


class ICSFetcher:
    """Async HTTP client for downloading ICS calendar files."""

    def __init__(
        self,
        request_timeout: int = 30,
        max_retries: int = 2,
        retry_backoff_factor: float = 1.5,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Initialize ICS fetcher.

        Args:
            request_timeout: Default read timeout in seconds
            max_retries: Retries after the first attempt for network errors
            retry_backoff_factor: Base for exponential backoff between retries
            client: Optional externally owned HTTP client (not closed by the fetcher)
        """
        self.request_timeout = request_timeout
        self.max_retries = max_retries
        self.retry_backoff_factor = retry_backoff_factor
        self.client: Optional[httpx.AsyncClient] = client
        self._owns_client = client is None

        logger.debug("ICS fetcher initialized (external client: %s)", not self._owns_client)

    async def __aenter__(self) -> "ICSFetcher":
        """Async context manager entry."""
        self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self.client is not None and self._owns_client:
            if not self.client.is_closed:
                await self.client.aclose()
                logger.debug("Closed HTTP client")
            self.client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            timeout = httpx.Timeout(connect=10.0, read=self.request_timeout, write=10.0, pool=30.0)
            self.client = httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                headers=DEFAULT_HEADERS,
            )
            self._owns_client = True
        return self.client

    def _validate_url(self, url: str) -> bool:
        """Only absolute http(s) URLs with a hostname are fetched."""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            logger.debug("Blocked non-HTTP(S) URL: %s", url)
            return False
        if not parsed.hostname:
            logger.debug("Blocked URL with missing hostname: %s", url)
            return False
        return True

    async def fetch(self, source: CalendarSource) -> str:
        """Download the raw calendar text of a source.

        Args:
            source: Calendar source to fetch

        Returns:
            Response body text

        Raises:
            TransportError: If the URL is invalid, unreachable, times out,
                answers with a non-success status, or returns an empty body
        """
        url = normalize_feed_url(source.url)
        if not self._validate_url(url):
            raise TransportError(f"Invalid feed URL: {source.url!r}", url=source.url)

        logger.debug("Fetching ICS for %s from %s", source.name, url)
        try:
            response = await self._get_with_retry(url, source.timeout or self.request_timeout)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise TransportError(
                f"HTTP {status}: {e.response.reason_phrase}", url=url, status_code=status
            ) from e
        except httpx.TimeoutException as e:
            raise TransportError(f"Request timeout fetching {url}", url=url) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Network error fetching {url}: {e}", url=url) from e

        if response.status_code != 200 or not response.text:
            raise TransportError(
                f"Unusable response from {url} (status {response.status_code}, "
                f"{len(response.content)} bytes)",
                url=url,
                status_code=response.status_code,
            )

        logger.debug("Fetched %d bytes for %s", len(response.content), source.name)
        return response.text

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff with jitter."""
        base_backoff = min(self.retry_backoff_factor**attempt, MAX_BACKOFF_SECONDS)
        jitter = random.uniform(JITTER_MIN_FACTOR, JITTER_MAX_FACTOR) * base_backoff  # nosec B311 - jitter not cryptographic
        return base_backoff + jitter

    async def _get_with_retry(self, url: str, timeout: int) -> httpx.Response:
        """GET with retries on network errors; HTTP status errors are not retried."""
        client = self._ensure_client()
        attempt = 0

        while True:
            try:
                response = await client.get(url, timeout=timeout)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError:
                raise
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                if attempt >= self.max_retries:
                    logger.warning("All %d attempts failed for %s: %s", attempt + 1, url, e)
                    raise
                backoff_time = self._calculate_backoff(attempt)
                logger.warning(
                    "Request failed (attempt %s/%s), retrying in %.1fs: %s",
                    attempt + 1,
                    self.max_retries + 1,
                    backoff_time,
                    e,
                )
                await asyncio.sleep(backoff_time)
                attempt += 1
