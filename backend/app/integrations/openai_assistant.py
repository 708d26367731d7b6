"""OpenAI integration client for assistant sessions, completions and vision.

Features:
- Async HTTP client using httpx (direct API calls, no SDK)
- Assistants v2 thread/message/run endpoints for the session-based path
- Stateless chat completion used as the generation fallback
- Single-turn vision analysis with image data URLs
- Circuit breaker for fault tolerance
- Retry logic with exponential backoff
- Handles timeouts, rate limits (429), auth failures (401/403)

ERROR LOGGING REQUIREMENTS:
- Log all outbound API calls with endpoint, method, timing
- Log request/response bodies at DEBUG level (truncate large responses)
- Include retry attempt number in logs
- Log token usage when the API reports it
- Never log or expose the API key
- Log circuit breaker state changes
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from app.core.config import get_settings
from app.core.logging import get_logger, openai_logger

logger = get_logger(__name__)

OPENAI_BETA_HEADER = "assistants=v2"

# Run statuses reported by the assistants API
RUN_COMPLETED = "completed"
RUN_FAILURE_STATUSES = frozenset({"failed", "cancelled", "expired", "incomplete"})


@dataclass
class CompletionResult:
    """Result of a chat completion or vision request."""

    success: bool
    text: str | None = None
    error: str | None = None
    status_code: int | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    duration_ms: float = 0.0
    request_id: str | None = None


@dataclass
class RunStatus:
    """Snapshot of an assistant run."""

    id: str
    status: str
    last_error: str | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == RUN_COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status in RUN_FAILURE_STATUSES


@dataclass
class ThreadMessage:
    """A message in an assistant thread, flattened to its text parts."""

    role: str
    text: str


class OpenAIError(Exception):
    """Base exception for OpenAI API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.request_id = request_id


class OpenAITimeoutError(OpenAIError):
    """Raised when a request times out."""

    pass


class OpenAIRateLimitError(OpenAIError):
    """Raised when rate limited (429)."""

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        response_body: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            message, status_code=429, response_body=response_body, request_id=request_id
        )
        self.retry_after = retry_after


class OpenAIAuthError(OpenAIError):
    """Raised when authentication fails (401/403)."""

    pass


class OpenAICircuitOpenError(OpenAIError):
    """Raised when circuit breaker is open."""

    pass


def _error_message(response: httpx.Response) -> tuple[str, dict[str, Any] | None]:
    """Pull the API error message out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}", None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"]), body
        return str(body)[:200], body
    return str(body)[:200], None


def _message_text(message: dict[str, Any]) -> str:
    """Join the text parts of an assistants API message."""
    parts: list[str] = []
    for part in message.get("content") or []:
        if part.get("type") == "text":
            value = (part.get("text") or {}).get("value")
            if value:
                parts.append(value)
    return "\n".join(parts)


class OpenAIClient:
    """Async client for the OpenAI REST API.

    Provides:
    - Assistant sessions (threads, messages, runs) for stateful generation
    - Chat completions for stateless generation and vision analysis
    - Circuit breaker, retries and structured logging on every call
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        vision_model: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
        max_tokens: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key. Defaults to settings.
            base_url: API base URL. Defaults to settings.
            model: Completion model. Defaults to settings.
            vision_model: Vision model. Defaults to settings.
            timeout: Request timeout in seconds. Defaults to settings.
            max_retries: Maximum retry attempts. Defaults to settings.
            retry_delay: Base delay between retries. Defaults to settings.
            max_tokens: Maximum completion tokens. Defaults to settings.
            transport: Optional httpx transport (used by tests).
        """
        settings = get_settings()

        self._api_key = api_key or settings.openai_api_key
        self._base_url = (base_url or settings.openai_base_url).rstrip("/")
        self._model = model or settings.openai_model
        self._vision_model = vision_model or settings.openai_vision_model
        self._timeout = timeout or settings.openai_timeout
        self._max_retries = max_retries or settings.openai_max_retries
        self._retry_delay = retry_delay or settings.openai_retry_delay
        self._max_tokens = max_tokens or settings.openai_max_tokens
        self._transport = transport

        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.openai_circuit_failure_threshold,
                recovery_timeout=settings.openai_circuit_recovery_timeout,
            ),
            name="openai",
        )

        # HTTP client (created lazily)
        self._client: httpx.AsyncClient | None = None
        self._available = bool(self._api_key)

    @property
    def available(self) -> bool:
        """Check if OpenAI is configured."""
        return self._available

    @property
    def model(self) -> str:
        return self._model

    @property
    def vision_model(self) -> str:
        return self._vision_model

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Get the circuit breaker instance."""
        return self._circuit_breaker

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers: dict[str, str] = {
                "Content-Type": "application/json",
                "Accept": "application/json",
                "OpenAI-Beta": OPENAI_BETA_HEADER,
            }
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"

            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        logger.info("OpenAI client closed")

    async def _backoff(self, attempt: int, reason: str, endpoint: str) -> None:
        delay = self._retry_delay * (2**attempt)
        logger.warning(
            f"OpenAI request attempt {attempt + 1} failed, retrying in {delay}s",
            extra={
                "endpoint": endpoint,
                "attempt": attempt + 1,
                "max_retries": self._max_retries,
                "delay_seconds": delay,
                "reason": reason,
            },
        )
        await asyncio.sleep(delay)

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one API request with retries and circuit breaker.

        Returns:
            Decoded JSON response body.

        Raises:
            OpenAIError: Not configured, client error, or retries exhausted.
            OpenAIAuthError: 401/403.
            OpenAIRateLimitError: 429 after the last retry.
            OpenAITimeoutError: Timeout after the last retry.
            OpenAICircuitOpenError: Circuit breaker is open.
        """
        if not self._available:
            raise OpenAIError("OpenAI not configured (missing API key)")

        if not await self._circuit_breaker.can_execute():
            openai_logger.graceful_fallback(endpoint, "Circuit breaker open")
            raise OpenAICircuitOpenError("Circuit breaker is open")

        client = await self._get_client()
        last_error: OpenAIError | None = None

        for attempt in range(self._max_retries):
            attempt_start = time.monotonic()
            openai_logger.api_call_start(method, endpoint, retry_attempt=attempt)

            try:
                response = await client.request(method, endpoint, json=json, params=params)
            except httpx.TimeoutException:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                openai_logger.timeout(endpoint, self._timeout)
                openai_logger.api_call_error(
                    method, endpoint, duration_ms, None, "Request timed out",
                    "TimeoutError", retry_attempt=attempt,
                )
                await self._circuit_breaker.record_failure()
                last_error = OpenAITimeoutError(f"Request timed out after {self._timeout}s")
                if attempt < self._max_retries - 1:
                    await self._backoff(attempt, "timeout", endpoint)
                continue
            except httpx.RequestError as e:
                duration_ms = (time.monotonic() - attempt_start) * 1000
                openai_logger.api_call_error(
                    method, endpoint, duration_ms, None, str(e),
                    type(e).__name__, retry_attempt=attempt,
                )
                await self._circuit_breaker.record_failure()
                last_error = OpenAIError(f"Request failed: {e}")
                if attempt < self._max_retries - 1:
                    await self._backoff(attempt, str(e), endpoint)
                continue

            duration_ms = (time.monotonic() - attempt_start) * 1000
            request_id = response.headers.get("x-request-id")

            if response.status_code == 429:
                retry_after_str = response.headers.get("retry-after")
                retry_after = float(retry_after_str) if retry_after_str else None
                openai_logger.rate_limit(endpoint, retry_after=retry_after)
                await self._circuit_breaker.record_failure()
                last_error = OpenAIRateLimitError(
                    "Rate limit exceeded", retry_after=retry_after, request_id=request_id
                )
                if attempt < self._max_retries - 1:
                    if retry_after and retry_after <= 60:
                        await asyncio.sleep(retry_after)
                    else:
                        await self._backoff(attempt, "rate limited", endpoint)
                continue

            if response.status_code in (401, 403):
                openai_logger.auth_failure(response.status_code)
                await self._circuit_breaker.record_failure()
                raise OpenAIAuthError(
                    f"Authentication failed ({response.status_code})",
                    status_code=response.status_code,
                    request_id=request_id,
                )

            if response.status_code >= 500:
                message, body = _error_message(response)
                openai_logger.api_call_error(
                    method, endpoint, duration_ms, response.status_code, message,
                    "ServerError", retry_attempt=attempt, request_id=request_id,
                )
                await self._circuit_breaker.record_failure()
                last_error = OpenAIError(
                    f"Server error ({response.status_code}): {message}",
                    status_code=response.status_code,
                    response_body=body,
                    request_id=request_id,
                )
                if attempt < self._max_retries - 1:
                    await self._backoff(attempt, f"HTTP {response.status_code}", endpoint)
                continue

            if response.status_code >= 400:
                message, body = _error_message(response)
                openai_logger.api_call_error(
                    method, endpoint, duration_ms, response.status_code, message,
                    "ClientError", retry_attempt=attempt, request_id=request_id,
                )
                raise OpenAIError(
                    f"Client error ({response.status_code}): {message}",
                    status_code=response.status_code,
                    response_body=body,
                    request_id=request_id,
                )

            try:
                data = response.json()
            except ValueError:
                data = None
            if not isinstance(data, dict):
                openai_logger.api_call_error(
                    method, endpoint, duration_ms, response.status_code,
                    "Invalid JSON response", "InvalidResponse",
                    retry_attempt=attempt, request_id=request_id,
                )
                await self._circuit_breaker.record_failure()
                last_error = OpenAIError(
                    "Invalid JSON response",
                    status_code=response.status_code,
                    response_body={"text": response.text[:500]},
                    request_id=request_id,
                )
                if attempt < self._max_retries - 1:
                    await self._backoff(attempt, "invalid JSON", endpoint)
                continue

            openai_logger.api_call_success(method, endpoint, duration_ms, request_id=request_id)
            await self._circuit_breaker.record_success()
            return data

        raise last_error or OpenAIError("Request failed after all retries")

    # ------------------------------------------------------------------
    # Assistant sessions
    # ------------------------------------------------------------------

    async def create_thread(self) -> str:
        """Open a new conversation thread and return its id."""
        data = await self._request("POST", "/threads", json={})
        return str(data["id"])

    async def add_message(
        self, thread_id: str, content: str, image_urls: list[str] | None = None
    ) -> str:
        """Append a user message (text plus optional image URLs) to a thread."""
        openai_logger.request_body(f"/threads/{thread_id}/messages", content)
        message_content: str | list[dict[str, Any]] = content
        if image_urls:
            message_content = [{"type": "text", "text": content}] + [
                {"type": "image_url", "image_url": {"url": url}} for url in image_urls
            ]
        data = await self._request(
            "POST",
            f"/threads/{thread_id}/messages",
            json={"role": "user", "content": message_content},
        )
        return str(data.get("id", ""))

    async def create_run(self, thread_id: str, assistant_id: str) -> RunStatus:
        """Start a run of the given assistant on a thread."""
        data = await self._request(
            "POST", f"/threads/{thread_id}/runs", json={"assistant_id": assistant_id}
        )
        return self._run_status(data)

    async def get_run(self, thread_id: str, run_id: str) -> RunStatus:
        """Fetch the current status of a run."""
        data = await self._request("GET", f"/threads/{thread_id}/runs/{run_id}")
        return self._run_status(data)

    async def list_messages(self, thread_id: str) -> list[ThreadMessage]:
        """List thread messages, newest first."""
        data = await self._request(
            "GET", f"/threads/{thread_id}/messages", params={"order": "desc"}
        )
        return [
            ThreadMessage(role=str(item.get("role", "")), text=_message_text(item))
            for item in data.get("data") or []
        ]

    async def get_assistant_instructions(self, assistant_id: str) -> str:
        """Return the configured instructions of an assistant."""
        data = await self._request("GET", f"/assistants/{assistant_id}")
        return str(data.get("instructions") or "")

    @staticmethod
    def _run_status(data: dict[str, Any]) -> RunStatus:
        last_error = data.get("last_error") or {}
        return RunStatus(
            id=str(data.get("id", "")),
            status=str(data.get("status", "")),
            last_error=last_error.get("message") if isinstance(last_error, dict) else None,
        )

    # ------------------------------------------------------------------
    # Stateless completions
    # ------------------------------------------------------------------

    async def _chat(
        self,
        model: str,
        messages: list[dict[str, Any]],
        temperature: float,
        max_tokens: int,
    ) -> CompletionResult:
        start_time = time.monotonic()
        try:
            data = await self._request(
                "POST",
                "/chat/completions",
                json={
                    "model": model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
            )
        except OpenAIError as e:
            return CompletionResult(
                success=False,
                error=str(e),
                status_code=e.status_code,
                request_id=e.request_id,
                duration_ms=(time.monotonic() - start_time) * 1000,
            )

        duration_ms = (time.monotonic() - start_time) * 1000
        choices = data.get("choices") or []
        text = ((choices[0].get("message") or {}).get("content") or "") if choices else ""
        usage = data.get("usage") or {}
        prompt_tokens = usage.get("prompt_tokens")
        completion_tokens = usage.get("completion_tokens")

        openai_logger.response_body("/chat/completions", text, duration_ms)
        if prompt_tokens or completion_tokens:
            openai_logger.token_usage(model, prompt_tokens, completion_tokens)

        if not text.strip():
            return CompletionResult(
                success=False, error="Empty completion", duration_ms=duration_ms
            )

        return CompletionResult(
            success=True,
            text=text,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            duration_ms=duration_ms,
        )

    async def complete(
        self,
        user_prompt: str,
        system_prompt: str | None = None,
        temperature: float = 0.7,
        max_tokens: int | None = None,
    ) -> CompletionResult:
        """Run a single prompt/response exchange.

        Args:
            user_prompt: The user message
            system_prompt: Optional system prompt
            temperature: Sampling temperature
            max_tokens: Maximum response tokens (overrides default)

        Returns:
            CompletionResult with response text and metadata
        """
        messages: list[dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        openai_logger.request_body("/chat/completions", user_prompt)
        return await self._chat(
            self._model, messages, temperature, max_tokens or self._max_tokens
        )

    async def analyze_images(
        self,
        image_urls: list[str],
        instruction_prompt: str,
        max_tokens: int = 800,
    ) -> CompletionResult:
        """Describe images in a single vision turn (no session).

        Args:
            image_urls: Public or data: URLs of the images
            instruction_prompt: What to report about the images
            max_tokens: Maximum response tokens

        Returns:
            CompletionResult with the model's description
        """
        content: list[dict[str, Any]] = [{"type": "text", "text": instruction_prompt}]
        content.extend(
            {"type": "image_url", "image_url": {"url": url, "detail": "low"}}
            for url in image_urls
        )
        return await self._chat(
            self._vision_model,
            [{"role": "user", "content": content}],
            temperature=0.2,
            max_tokens=max_tokens,
        )


# Global OpenAI client instance
openai_client: OpenAIClient | None = None


async def init_openai() -> OpenAIClient:
    """Initialize the global OpenAI client."""
    global openai_client
    if openai_client is None:
        openai_client = OpenAIClient()
        if openai_client.available:
            logger.info("OpenAI client initialized", extra={"model": openai_client.model})
        else:
            logger.warning("OpenAI not configured (missing OPENAI_API_KEY)")
    return openai_client


async def close_openai() -> None:
    """Close the global OpenAI client."""
    global openai_client
    if openai_client:
        await openai_client.close()
        openai_client = None


async def get_openai() -> OpenAIClient:
    """Dependency for getting the OpenAI client."""
    global openai_client
    if openai_client is None:
        await init_openai()
    return openai_client  # type: ignore[return-value]
