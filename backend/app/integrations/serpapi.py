"""SerpAPI integration client for keyword research and review snippets.

Searches Google via SerpAPI, localized to Austria (gl=at, hl=de) by default.

Features:
- Async HTTP client using httpx (direct API calls)
- Circuit breaker for fault tolerance
- Retry logic with exponential backoff
- Minimum delay between consecutive requests
- Structured SerpResult dataclass for organic results
- Review snippet lookup restricted to review platforms

Follows the same integration pattern as openai_assistant.py.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

SERPAPI_URL = "https://serpapi.com/search"

DEFAULT_NUM_RESULTS = 10

REVIEW_SITES = "site:google.com OR site:yelp.com OR site:trustpilot.com"


@dataclass
class SerpResult:
    """A single organic Google result."""

    title: str
    link: str
    snippet: str
    position: int | None = None


class SerpAPIError(Exception):
    """Base exception for SerpAPI errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class SerpAPICircuitOpenError(SerpAPIError):
    """Raised when circuit breaker is open."""

    pass


class SerpAPIClient:
    """Async client for SerpAPI Google search.

    Failures raise SerpAPIError so callers can decide how to degrade.
    """

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float = 1.0,
        rate_limit_delay: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize SerpAPI client.

        Args:
            api_key: SerpAPI key. Defaults to settings.
            timeout: Request timeout in seconds. Defaults to settings.
            max_retries: Maximum retry attempts. Defaults to settings.
            retry_delay: Base delay between retries.
            rate_limit_delay: Minimum seconds between consecutive requests.
            transport: Optional httpx transport (used by tests).
        """
        settings = get_settings()

        self._api_key = api_key or settings.serpapi_key
        self._timeout = timeout or settings.serpapi_timeout
        self._max_retries = max_retries or settings.serpapi_max_retries
        self._retry_delay = retry_delay
        self._rate_limit_delay = rate_limit_delay
        self._transport = transport

        # 5 failures, 60s recovery, same as the other integrations
        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(failure_threshold=5, recovery_timeout=60.0),
            name="serpapi",
        )

        self._client: httpx.AsyncClient | None = None
        self._available = bool(self._api_key)
        self._last_request_time: float = 0.0

    @property
    def available(self) -> bool:
        """Check if SerpAPI is configured."""
        return self._available

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Get the circuit breaker instance."""
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("SerpAPI client closed")

    async def _rate_limit(self) -> None:
        """Enforce minimum delay between consecutive requests."""
        elapsed = time.monotonic() - self._last_request_time
        if elapsed < self._rate_limit_delay:
            wait = self._rate_limit_delay - elapsed
            logger.debug("Rate limiting SerpAPI request", extra={"wait_seconds": round(wait, 3)})
            await asyncio.sleep(wait)
        self._last_request_time = time.monotonic()

    async def search(
        self,
        query: str,
        gl: str = "at",
        hl: str = "de",
        num_results: int = DEFAULT_NUM_RESULTS,
    ) -> list[SerpResult]:
        """Run one Google search and return its organic results.

        Args:
            query: Search query.
            gl: Country code.
            hl: Interface language.
            num_results: Number of results to request.

        Raises:
            SerpAPIError: Not configured, auth/client error, or retries exhausted.
            SerpAPICircuitOpenError: Circuit breaker is open.
        """
        if not self._available:
            raise SerpAPIError("SerpAPI not configured (missing SERPAPI_KEY)")

        if not await self._circuit_breaker.can_execute():
            logger.warning("SerpAPI circuit breaker is open, skipping request")
            raise SerpAPICircuitOpenError("Circuit breaker is open")

        params: dict[str, Any] = {
            "q": query,
            "api_key": self._api_key,
            "engine": "google",
            "gl": gl,
            "hl": hl,
            "num": num_results,
        }

        await self._rate_limit()
        client = await self._get_client()
        last_error: SerpAPIError | None = None

        for attempt in range(self._max_retries):
            attempt_start = time.monotonic()
            logger.info(
                "SerpAPI search request",
                extra={"query": query, "gl": gl, "hl": hl, "attempt": attempt + 1},
            )

            try:
                response = await client.get(SERPAPI_URL, params=params)
            except httpx.TimeoutException:
                logger.warning(
                    "SerpAPI request timed out",
                    extra={"timeout": self._timeout, "attempt": attempt + 1},
                )
                await self._circuit_breaker.record_failure()
                last_error = SerpAPIError(f"Request timed out after {self._timeout}s")
            except httpx.RequestError as e:
                logger.warning(
                    "SerpAPI request failed",
                    extra={"error": str(e), "error_type": type(e).__name__, "attempt": attempt + 1},
                )
                await self._circuit_breaker.record_failure()
                last_error = SerpAPIError(f"Request failed: {e}")
            else:
                duration_ms = (time.monotonic() - attempt_start) * 1000

                if response.status_code in (401, 403):
                    logger.error(
                        "SerpAPI authentication failed",
                        extra={"status_code": response.status_code, "duration_ms": round(duration_ms, 2)},
                    )
                    await self._circuit_breaker.record_failure()
                    raise SerpAPIError("Authentication failed", status_code=response.status_code)

                if response.status_code == 429 or response.status_code >= 500:
                    logger.warning(
                        "SerpAPI request rejected, will retry",
                        extra={
                            "status_code": response.status_code,
                            "duration_ms": round(duration_ms, 2),
                            "attempt": attempt + 1,
                        },
                    )
                    await self._circuit_breaker.record_failure()
                    last_error = SerpAPIError(
                        f"HTTP {response.status_code}", status_code=response.status_code
                    )
                elif response.status_code >= 400:
                    error_body = response.json() if response.content else {}
                    logger.error(
                        "SerpAPI client error",
                        extra={
                            "status_code": response.status_code,
                            "error": error_body.get("error", "Unknown error"),
                            "duration_ms": round(duration_ms, 2),
                        },
                    )
                    raise SerpAPIError(
                        f"Client error ({response.status_code})",
                        status_code=response.status_code,
                        response_body=error_body,
                    )
                else:
                    data = response.json()
                    results = [
                        SerpResult(
                            title=item.get("title", ""),
                            link=item.get("link", ""),
                            snippet=item.get("snippet", ""),
                            position=item.get("position"),
                        )
                        for item in data.get("organic_results", [])
                    ]
                    await self._circuit_breaker.record_success()
                    logger.info(
                        "SerpAPI search complete",
                        extra={
                            "query": query,
                            "results": len(results),
                            "duration_ms": round(duration_ms, 2),
                        },
                    )
                    return results

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._retry_delay * (2**attempt))

        logger.error(
            "SerpAPI request failed after all retries",
            extra={"error": str(last_error), "max_retries": self._max_retries},
        )
        raise last_error or SerpAPIError("Request failed after all retries")

    async def fetch_reviews(self, business: str, limit: int = 10) -> list[str]:
        """Return review snippets for a business from review platforms."""
        results = await self.search(f"{business} reviews {REVIEW_SITES}")
        return [r.snippet for r in results if r.snippet][:limit]


# ---------------------------------------------------------------------------
# Global client instance + lifecycle functions
# ---------------------------------------------------------------------------

serpapi_client: SerpAPIClient | None = None


async def init_serpapi() -> SerpAPIClient:
    """Initialize the global SerpAPI client."""
    global serpapi_client
    if serpapi_client is None:
        serpapi_client = SerpAPIClient()
        if serpapi_client.available:
            logger.info("SerpAPI client initialized")
        else:
            logger.info("SerpAPI not configured (missing SERPAPI_KEY)")
    return serpapi_client


async def close_serpapi() -> None:
    """Close the global SerpAPI client."""
    global serpapi_client
    if serpapi_client:
        await serpapi_client.close()
        serpapi_client = None


async def get_serpapi() -> SerpAPIClient:
    """Dependency for getting the SerpAPI client."""
    global serpapi_client
    if serpapi_client is None:
        await init_serpapi()
    return serpapi_client  # type: ignore[return-value]
