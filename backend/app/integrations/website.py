"""Website client for reading the studio's public homepage.

Fetches a page with httpx and reduces it to visible text with BeautifulSoup
(script and style content removed, whitespace collapsed).

Features:
- Async HTTP client using httpx, redirects followed
- Browser-like User-Agent
- Structured PageFetchResult with timing

ERROR LOGGING REQUIREMENTS:
- Log every fetch with URL, status and duration
- Log timeouts and connection errors with error type
"""

import re
import time
from dataclasses import dataclass

import httpx
from bs4 import BeautifulSoup

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

NON_CONTENT_TAGS = ("script", "style", "noscript", "template")


@dataclass
class PageFetchResult:
    """Result of fetching one page."""

    success: bool
    url: str
    text: str = ""
    error: str | None = None
    status_code: int | None = None
    duration_ms: float = 0.0


class WebsiteFetchError(Exception):
    """Raised when a page cannot be fetched."""

    def __init__(self, message: str, url: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


def html_to_text(html: str) -> str:
    """Reduce HTML to its visible text on a single line."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup.find_all(NON_CONTENT_TAGS):
        element.decompose()
    text = soup.get_text(separator=" ", strip=True)
    return re.sub(r"\s+", " ", text).strip()


class WebsiteClient:
    """Fetches public pages and returns their visible text."""

    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._timeout = timeout or settings.site_fetch_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("Website client closed")

    async def fetch(self, url: str) -> PageFetchResult:
        """Fetch a page without raising.

        Args:
            url: Absolute URL to fetch

        Returns:
            PageFetchResult with the visible text on success
        """
        start_time = time.monotonic()
        client = await self._get_client()

        try:
            response = await client.get(url)
        except httpx.TimeoutException:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.warning(
                "Website fetch timed out",
                extra={"url": url, "timeout": self._timeout, "duration_ms": round(duration_ms, 2)},
            )
            return PageFetchResult(
                success=False,
                url=url,
                error=f"Request timed out after {self._timeout}s",
                duration_ms=duration_ms,
            )
        except httpx.RequestError as e:
            duration_ms = (time.monotonic() - start_time) * 1000
            logger.warning(
                "Website fetch failed",
                extra={"url": url, "error": str(e), "error_type": type(e).__name__},
            )
            return PageFetchResult(success=False, url=url, error=str(e), duration_ms=duration_ms)

        duration_ms = (time.monotonic() - start_time) * 1000
        if response.status_code >= 400:
            logger.warning(
                "Website fetch returned error status",
                extra={"url": url, "status_code": response.status_code},
            )
            return PageFetchResult(
                success=False,
                url=url,
                error=f"HTTP {response.status_code}",
                status_code=response.status_code,
                duration_ms=duration_ms,
            )

        text = html_to_text(response.text)
        logger.info(
            "Website fetched",
            extra={
                "url": url,
                "status_code": response.status_code,
                "text_length": len(text),
                "duration_ms": round(duration_ms, 2),
            },
        )
        return PageFetchResult(
            success=True,
            url=url,
            text=text,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

    async def fetch_text(self, url: str) -> str:
        """Fetch a page and return its visible text.

        Raises:
            WebsiteFetchError: If the page cannot be fetched.
        """
        result = await self.fetch(url)
        if not result.success:
            raise WebsiteFetchError(
                result.error or "Fetch failed", url=url, status_code=result.status_code
            )
        return result.text


# Global website client instance
website_client: WebsiteClient | None = None


async def init_website() -> WebsiteClient:
    """Initialize the global website client."""
    global website_client
    if website_client is None:
        website_client = WebsiteClient()
        logger.info("Website client initialized")
    return website_client


async def close_website() -> None:
    """Close the global website client."""
    global website_client
    if website_client:
        await website_client.close()
        website_client = None


async def get_website() -> WebsiteClient:
    """Dependency for getting the website client."""
    global website_client
    if website_client is None:
        await init_website()
    return website_client  # type: ignore[return-value]
