"""S3 integration client for blog image storage.

Features:
- Boto3-based client against AWS S3 or any S3-compatible endpoint
- Public URL derivation for stored objects (CDN base URL or endpoint/bucket/key)
- Circuit breaker for fault tolerance
- Retry logic with exponential backoff

ERROR LOGGING REQUIREMENTS:
- Log every S3 operation with bucket, key and timing
- Log and handle: timeouts, auth failures, connection errors
- Include retry attempt number in logs
- Never log or expose credentials
"""

import asyncio
import time
from collections.abc import Callable
from io import BytesIO
from typing import Any

import boto3
from botocore.config import Config as BotoConfig  # type: ignore[import-not-found]
from botocore.exceptions import (  # type: ignore[import-not-found]
    BotoCoreError,
    ClientError,
    ConnectionError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from app.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

AUTH_ERROR_CODES = frozenset({"AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch"})


class S3Error(Exception):
    """Base exception for S3 errors."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.key = key


class S3TimeoutError(S3Error):
    """Raised when an S3 operation times out."""

    pass


class S3ConnectionError(S3Error):
    """Raised when connection to S3 fails."""

    pass


class S3AuthError(S3Error):
    """Raised when S3 authentication fails."""

    pass


class S3NotFoundError(S3Error):
    """Raised when the bucket or object does not exist."""

    pass


class S3CircuitOpenError(S3Error):
    """Raised when circuit breaker is open."""

    pass


class S3Client:
    """Client for S3-compatible object storage.

    Only the write path the blog pipeline needs is exposed: ``store`` puts
    bytes under a key and hands back the URL readers will load it from.
    """

    def __init__(
        self,
        bucket: str | None = None,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str | None = None,
        public_base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_delay: float | None = None,
    ) -> None:
        """Initialize S3 client.

        Args:
            bucket: Default bucket name. Defaults to settings.
            endpoint_url: Custom S3 endpoint. Defaults to settings.
            access_key: S3 access key. Defaults to settings.
            secret_key: S3 secret key. Defaults to settings.
            region: S3 region. Defaults to settings.
            public_base_url: Base URL objects are served from. Defaults to settings.
            timeout: Operation timeout in seconds. Defaults to settings.
            max_retries: Maximum retry attempts. Defaults to settings.
            retry_delay: Base delay between retries. Defaults to settings.
        """
        settings = get_settings()

        self._bucket = bucket or settings.s3_bucket
        self._endpoint_url = endpoint_url or settings.s3_endpoint_url
        self._access_key = access_key or settings.s3_access_key
        self._secret_key = secret_key or settings.s3_secret_key
        self._region = region or settings.s3_region
        self._public_base_url = public_base_url or settings.s3_public_base_url
        self._timeout = timeout or settings.s3_timeout
        self._max_retries = max_retries or settings.s3_max_retries
        self._retry_delay = retry_delay or settings.s3_retry_delay

        self._circuit_breaker = CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.s3_circuit_failure_threshold,
                recovery_timeout=settings.s3_circuit_recovery_timeout,
            ),
            name="s3",
        )

        # boto3 client (created lazily)
        self._client: Any = None
        self._available = bool(self._access_key and self._secret_key)

    @property
    def available(self) -> bool:
        """Check if S3 credentials are configured."""
        return self._available

    @property
    def bucket(self) -> str | None:
        """Get the default bucket name."""
        return self._bucket

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        """Get the circuit breaker instance."""
        return self._circuit_breaker

    def _get_client(self) -> Any:
        """Get or create the boto3 client."""
        if self._client is None:
            client_kwargs: dict[str, Any] = {
                "service_name": "s3",
                "aws_access_key_id": self._access_key,
                "aws_secret_access_key": self._secret_key,
                "region_name": self._region,
                "config": BotoConfig(
                    connect_timeout=self._timeout,
                    read_timeout=self._timeout,
                    retries={"max_attempts": 0},  # retries handled in _execute_with_retry
                ),
            }
            if self._endpoint_url:
                client_kwargs["endpoint_url"] = self._endpoint_url
            self._client = boto3.client(**client_kwargs)
        return self._client

    def public_url(self, bucket: str, key: str) -> str:
        """Build the public URL for an object.

        Uses the configured public base URL when set, otherwise the
        endpoint (or the regional AWS host) with bucket and key as path.
        """
        if self._public_base_url:
            return f"{self._public_base_url.rstrip('/')}/{bucket}/{key}"
        if self._endpoint_url:
            return f"{self._endpoint_url.rstrip('/')}/{bucket}/{key}"
        return f"https://{bucket}.s3.{self._region}.amazonaws.com/{key}"

    async def _execute_with_retry(
        self,
        operation: str,
        func: Callable[[], Any],
        bucket: str,
        key: str | None = None,
    ) -> Any:
        """Run a blocking boto3 call in the executor with retries.

        Raises:
            S3CircuitOpenError: If circuit breaker is open
            S3AuthError: If authentication fails
            S3NotFoundError: If the bucket does not exist
            S3TimeoutError: If the last attempt timed out
            S3ConnectionError: If the last attempt could not connect
            S3Error: For other errors
        """
        if not self._available:
            raise S3Error(
                "S3 not configured (missing access_key or secret_key)",
                operation=operation,
                key=key,
            )

        if not await self._circuit_breaker.can_execute():
            logger.warning(
                f"S3 {operation} blocked by circuit breaker",
                extra={"s3_operation": operation, "s3_bucket": bucket, "s3_key": key},
            )
            raise S3CircuitOpenError("Circuit breaker is open", operation=operation, key=key)

        last_error: S3Error | None = None

        for attempt in range(self._max_retries):
            start_time = time.monotonic()
            log_context = {
                "s3_operation": operation,
                "s3_bucket": bucket,
                "s3_key": key,
                "retry_attempt": attempt,
            }
            logger.debug(f"S3 {operation} started", extra=log_context)

            try:
                loop = asyncio.get_running_loop()
                result = await loop.run_in_executor(None, func)
            except ClientError as e:
                duration_ms = (time.monotonic() - start_time) * 1000
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                error_message = e.response.get("Error", {}).get("Message", str(e))
                logger.error(
                    f"S3 {operation} failed: {error_message}",
                    extra={
                        **log_context,
                        "duration_ms": round(duration_ms, 2),
                        "error_type": f"ClientError:{error_code}",
                    },
                )
                await self._circuit_breaker.record_failure()

                if error_code in AUTH_ERROR_CODES:
                    raise S3AuthError(
                        f"Authentication failed: {error_message}", operation=operation, key=key
                    ) from e
                if error_code == "NoSuchBucket":
                    raise S3NotFoundError(
                        f"Bucket not found: {bucket}", operation=operation, key=key
                    ) from e
                last_error = S3Error(
                    f"S3 error ({error_code}): {error_message}", operation=operation, key=key
                )
            except (ConnectTimeoutError, ReadTimeoutError) as e:
                logger.error(
                    f"S3 {operation} timed out",
                    extra={**log_context, "timeout_seconds": self._timeout, "error": str(e)},
                )
                await self._circuit_breaker.record_failure()
                last_error = S3TimeoutError(
                    f"Operation timed out after {self._timeout}s", operation=operation, key=key
                )
            except (EndpointConnectionError, ConnectionError) as e:
                logger.error(
                    f"S3 {operation} connection failed",
                    extra={**log_context, "error": str(e), "error_type": type(e).__name__},
                )
                await self._circuit_breaker.record_failure()
                last_error = S3ConnectionError(
                    f"Connection failed: {e}", operation=operation, key=key
                )
            except BotoCoreError as e:
                logger.error(
                    f"S3 {operation} failed: {e}",
                    extra={**log_context, "error": str(e), "error_type": type(e).__name__},
                )
                await self._circuit_breaker.record_failure()
                last_error = S3Error(f"S3 error: {e}", operation=operation, key=key)
            else:
                duration_ms = (time.monotonic() - start_time) * 1000
                logger.info(
                    f"S3 {operation} completed",
                    extra={**log_context, "duration_ms": round(duration_ms, 2)},
                )
                await self._circuit_breaker.record_success()
                return result

            if attempt < self._max_retries - 1:
                delay = self._retry_delay * (2**attempt)
                logger.warning(
                    f"S3 {operation} attempt {attempt + 1} failed, retrying in {delay}s",
                    extra={
                        "s3_operation": operation,
                        "s3_key": key,
                        "attempt": attempt + 1,
                        "max_retries": self._max_retries,
                        "delay_seconds": delay,
                    },
                )
                await asyncio.sleep(delay)

        raise last_error or S3Error(
            "Operation failed after all retries", operation=operation, key=key
        )

    async def store(
        self,
        bucket: str | None,
        filename: str,
        data: bytes,
        content_type: str = "image/jpeg",
    ) -> str:
        """Upload bytes and return their public URL.

        Args:
            bucket: Target bucket; falls back to the default bucket.
            filename: Object key.
            data: Object contents.
            content_type: MIME type stored with the object.

        Returns:
            Public URL of the stored object.

        Raises:
            S3Error: If no bucket is known or the upload fails.
        """
        target_bucket = bucket or self._bucket
        if not target_bucket:
            raise S3Error("No bucket configured", operation="store", key=filename)

        client = self._get_client()

        def upload() -> None:
            client.upload_fileobj(
                BytesIO(data),
                target_bucket,
                filename,
                ExtraArgs={"ContentType": content_type},
            )

        await self._execute_with_retry("store", upload, target_bucket, filename)
        return self.public_url(target_bucket, filename)


# Global S3 client instance
s3_client: S3Client | None = None


async def init_s3() -> S3Client:
    """Initialize the global S3 client."""
    global s3_client
    if s3_client is None:
        s3_client = S3Client()
        if s3_client.available:
            logger.info(
                "S3 client initialized",
                extra={"bucket": s3_client.bucket, "region": s3_client._region},
            )
        else:
            logger.info("S3 not configured (missing credentials)")
    return s3_client


async def close_s3() -> None:
    """Release the global S3 client."""
    global s3_client
    if s3_client is not None:
        s3_client = None
        logger.info("S3 client closed")


async def get_s3() -> S3Client:
    """Dependency for getting the S3 client."""
    global s3_client
    if s3_client is None:
        await init_s3()
    return s3_client  # type: ignore[return-value]
