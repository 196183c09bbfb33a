"""
Polite HTTP fetcher used by the Scout.

Handles:
- Identifying User-Agent and From headers on every request
- Per-request timeouts
- A minimum delay between requests to the same origin
- Classification of transport failures into FetchError reasons
"""

import asyncio
import enum
import time
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

from compscout.core.config import Settings, get_settings
from compscout.core.exceptions import FetchError
from compscout.core.logging import LoggerMixin


class FetchErrorType(str, enum.Enum):
    """Types of errors that can occur while fetching a page."""
    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    SSL_ERROR = "ssl_error"
    DNS_ERROR = "dns_error"
    HTTP_ERROR = "http_error"
    TOO_MANY_REDIRECTS = "too_many_redirects"
    UNKNOWN = "unknown"


def classify_error(error: Exception) -> FetchErrorType:
    """Map an httpx exception to a FetchErrorType."""
    if isinstance(error, httpx.TimeoutException):
        return FetchErrorType.TIMEOUT
    if isinstance(error, httpx.TooManyRedirects):
        return FetchErrorType.TOO_MANY_REDIRECTS

    error_str = str(error).lower()
    if isinstance(error, httpx.ConnectError):
        if "name or service not known" in error_str or "nodename" in error_str or "getaddrinfo" in error_str:
            return FetchErrorType.DNS_ERROR
        if "ssl" in error_str or "certificate" in error_str:
            return FetchErrorType.SSL_ERROR
        return FetchErrorType.CONNECTION_ERROR
    if isinstance(error, httpx.TransportError):
        return FetchErrorType.CONNECTION_ERROR
    return FetchErrorType.UNKNOWN


class DomainRateLimiter:
    """
    Enforces a minimum interval between requests per origin.

    Requests to the same origin queue on that origin's lock; other
    origins are not held up.
    """

    def __init__(self, *, min_interval: float) -> None:
        self._min_interval = max(0.0, min_interval)
        self._last_request_by_domain: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def wait(self, url: str) -> None:
        """Sleep as needed so requests to this URL's origin are spaced out."""
        if self._min_interval <= 0:
            return

        parsed = urlparse(url)
        domain = parsed.netloc.lower()
        if not domain:
            return

        lock = self._locks.setdefault(domain, asyncio.Lock())
        async with lock:
            last_time = self._last_request_by_domain.get(domain)
            if last_time is not None:
                wait_seconds = self._min_interval - (time.monotonic() - last_time)
                if wait_seconds > 0:
                    await asyncio.sleep(wait_seconds)
            self._last_request_by_domain[domain] = time.monotonic()


@dataclass
class FetchedPage:
    """Result of a successful fetch."""

    requested_url: str
    url: str
    status_code: int
    text: str

    @property
    def redirected(self) -> bool:
        return self.url != self.requested_url


class PageFetcher(LoggerMixin):
    """Fetches pages with the crawler identity, timeouts and throttling."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        settings: Settings | None = None,
        rate_limiter: DomainRateLimiter | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self.rate_limiter = rate_limiter or DomainRateLimiter(
            min_interval=self.settings.crawler_request_delay
        )

    @property
    def headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.settings.crawler_user_agent,
            "From": self.settings.crawler_from_header,
            "Accept": "text/html,application/xhtml+xml",
        }

    async def fetch(self, url: str, *, timeout: float | None = None) -> FetchedPage:
        """
        GET a URL, following redirects.

        Args:
            url: Absolute URL to fetch
            timeout: Override for the default page timeout

        Returns:
            FetchedPage with the final URL after redirects

        Raises:
            FetchError: On transport failure or a non-2xx response
        """
        await self.rate_limiter.wait(url)
        started = time.monotonic()

        try:
            response = await self._client.get(
                url,
                headers=self.headers,
                timeout=timeout or self.settings.crawler_timeout,
                follow_redirects=True,
            )
        except httpx.HTTPError as e:
            error_type = classify_error(e)
            self.logger.warning("Fetch failed", url=url, error_type=error_type.value, error=str(e))
            raise FetchError(url, error_type.value) from e

        duration = time.monotonic() - started
        if not response.is_success:
            self.logger.warning(
                "Fetch returned non-success status",
                url=url,
                status=response.status_code,
                duration=round(duration, 2),
            )
            raise FetchError(url, f"HTTP {response.status_code}", response.status_code)

        self.logger.debug(
            "Fetched page",
            url=url,
            final_url=str(response.url),
            status=response.status_code,
            size=len(response.content),
            duration=round(duration, 2),
        )
        return FetchedPage(
            requested_url=url,
            url=str(response.url),
            status_code=response.status_code,
            text=response.text,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
