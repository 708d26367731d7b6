"""Unit tests for S3 integration client.

Tests cover:
- store() uploads bytes and returns the public URL
- Public URL derivation (CDN base, endpoint, regional AWS host)
- Circuit breaker state transitions on S3 failures
- Retry logic with various error codes
- Auth and missing-bucket errors fail fast

Uses unittest.mock for mocking boto3 client.
"""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, ReadTimeoutError

from app.core.circuit_breaker import CircuitState
from app.integrations.s3 import (
    S3AuthError,
    S3CircuitOpenError,
    S3Client,
    S3ConnectionError,
    S3Error,
    S3NotFoundError,
    S3TimeoutError,
)

# ---------------------------------------------------------------------------
# Test Data Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_settings() -> MagicMock:
    """Create mock settings for S3 client."""
    settings = MagicMock()
    settings.s3_bucket = "blog-images"
    settings.s3_endpoint_url = "http://localhost:4566"
    settings.s3_access_key = "test-access-key"
    settings.s3_secret_key = "test-secret-key"
    settings.s3_region = "eu-central-1"
    settings.s3_public_base_url = None
    settings.s3_timeout = 5.0
    settings.s3_max_retries = 3
    settings.s3_retry_delay = 0.001  # Fast for tests
    settings.s3_circuit_failure_threshold = 3
    settings.s3_circuit_recovery_timeout = 60.0
    return settings


@pytest.fixture
def mock_boto_client() -> MagicMock:
    """Create a mock boto3 S3 client."""
    return MagicMock()


@pytest.fixture
def s3_client(mock_settings: MagicMock, mock_boto_client: MagicMock):
    """S3Client with mocked settings and boto3."""
    with (
        patch("app.integrations.s3.get_settings", return_value=mock_settings),
        patch("app.integrations.s3.boto3.client", return_value=mock_boto_client),
    ):
        yield S3Client()


def make_client_error(code: str, message: str = "Test error") -> Exception:
    """Create a botocore ClientError with specified error code."""
    error: Exception = ClientError(
        {"Error": {"Code": code, "Message": message}},
        "PutObject",
    )
    return error


# ---------------------------------------------------------------------------
# Initialization and URL Tests
# ---------------------------------------------------------------------------


class TestS3ClientInit:
    """Tests for configuration handling."""

    def test_available_with_credentials(self, s3_client: S3Client) -> None:
        assert s3_client.available is True
        assert s3_client.bucket == "blog-images"

    def test_not_available_without_secret_key(self, mock_settings: MagicMock) -> None:
        mock_settings.s3_secret_key = None
        with patch("app.integrations.s3.get_settings", return_value=mock_settings):
            client = S3Client()

        assert client.available is False

    def test_override_params(self, mock_settings: MagicMock) -> None:
        with patch("app.integrations.s3.get_settings", return_value=mock_settings):
            client = S3Client(bucket="other", public_base_url="https://cdn.example.at")

        assert client.bucket == "other"
        assert client.public_url("other", "a.jpg") == "https://cdn.example.at/other/a.jpg"


class TestPublicUrl:
    def test_uses_endpoint_when_no_public_base(self, s3_client: S3Client) -> None:
        assert (
            s3_client.public_url("blog-images", "x.jpg")
            == "http://localhost:4566/blog-images/x.jpg"
        )

    def test_falls_back_to_regional_host(self, mock_settings: MagicMock) -> None:
        mock_settings.s3_endpoint_url = None
        with patch("app.integrations.s3.get_settings", return_value=mock_settings):
            client = S3Client()

        assert (
            client.public_url("blog-images", "x.jpg")
            == "https://blog-images.s3.eu-central-1.amazonaws.com/x.jpg"
        )


# ---------------------------------------------------------------------------
# store() Tests
# ---------------------------------------------------------------------------


class TestStore:
    async def test_store_uploads_and_returns_url(
        self, s3_client: S3Client, mock_boto_client: MagicMock
    ) -> None:
        url = await s3_client.store(None, "autoblog/abc.jpg", b"jpeg-bytes", "image/jpeg")

        assert url == "http://localhost:4566/blog-images/autoblog/abc.jpg"
        mock_boto_client.upload_fileobj.assert_called_once()
        args, kwargs = mock_boto_client.upload_fileobj.call_args
        assert args[0].read() == b"jpeg-bytes"
        assert args[1:] == ("blog-images", "autoblog/abc.jpg")
        assert kwargs["ExtraArgs"] == {"ContentType": "image/jpeg"}

    async def test_store_uses_explicit_bucket(
        self, s3_client: S3Client, mock_boto_client: MagicMock
    ) -> None:
        url = await s3_client.store("other-bucket", "a.jpg", b"x")

        assert url.endswith("/other-bucket/a.jpg")
        assert mock_boto_client.upload_fileobj.call_args.args[1] == "other-bucket"

    async def test_store_without_bucket_raises(
        self, mock_settings: MagicMock, mock_boto_client: MagicMock
    ) -> None:
        mock_settings.s3_bucket = None
        with (
            patch("app.integrations.s3.get_settings", return_value=mock_settings),
            patch("app.integrations.s3.boto3.client", return_value=mock_boto_client),
        ):
            client = S3Client()
            with pytest.raises(S3Error, match="No bucket"):
                await client.store(None, "a.jpg", b"x")

        mock_boto_client.upload_fileobj.assert_not_called()

    async def test_store_not_configured_raises(
        self, mock_settings: MagicMock, mock_boto_client: MagicMock
    ) -> None:
        mock_settings.s3_access_key = None
        with (
            patch("app.integrations.s3.get_settings", return_value=mock_settings),
            patch("app.integrations.s3.boto3.client", return_value=mock_boto_client),
        ):
            client = S3Client()
            with pytest.raises(S3Error, match="not configured"):
                await client.store(None, "a.jpg", b"x")

        mock_boto_client.upload_fileobj.assert_not_called()


# ---------------------------------------------------------------------------
# Error Handling and Retry Tests
# ---------------------------------------------------------------------------


class TestRetryLogic:
    async def test_retries_on_server_error(
        self, s3_client: S3Client, mock_boto_client: MagicMock
    ) -> None:
        mock_boto_client.upload_fileobj.side_effect = [
            make_client_error("InternalError"),
            None,
        ]

        url = await s3_client.store(None, "a.jpg", b"x")

        assert url.endswith("/blog-images/a.jpg")
        assert mock_boto_client.upload_fileobj.call_count == 2

    async def test_gives_up_after_max_retries(
        self, s3_client: S3Client, mock_boto_client: MagicMock
    ) -> None:
        mock_boto_client.upload_fileobj.side_effect = make_client_error("SlowDown")

        with pytest.raises(S3Error, match="SlowDown"):
            await s3_client.store(None, "a.jpg", b"x")

        assert mock_boto_client.upload_fileobj.call_count == 3

    async def test_auth_error_not_retried(
        self, s3_client: S3Client, mock_boto_client: MagicMock
    ) -> None:
        mock_boto_client.upload_fileobj.side_effect = make_client_error("AccessDenied")

        with pytest.raises(S3AuthError):
            await s3_client.store(None, "a.jpg", b"x")

        assert mock_boto_client.upload_fileobj.call_count == 1

    async def test_missing_bucket_not_retried(
        self, s3_client: S3Client, mock_boto_client: MagicMock
    ) -> None:
        mock_boto_client.upload_fileobj.side_effect = make_client_error("NoSuchBucket")

        with pytest.raises(S3NotFoundError):
            await s3_client.store(None, "a.jpg", b"x")

        assert mock_boto_client.upload_fileobj.call_count == 1

    async def test_timeout_maps_to_timeout_error(
        self, s3_client: S3Client, mock_boto_client: MagicMock
    ) -> None:
        mock_boto_client.upload_fileobj.side_effect = ReadTimeoutError(
            endpoint_url="http://localhost:4566"
        )

        with pytest.raises(S3TimeoutError):
            await s3_client.store(None, "a.jpg", b"x")

    async def test_connection_error_maps_to_connection_error(
        self, s3_client: S3Client, mock_boto_client: MagicMock
    ) -> None:
        mock_boto_client.upload_fileobj.side_effect = EndpointConnectionError(
            endpoint_url="http://localhost:4566"
        )

        with pytest.raises(S3ConnectionError):
            await s3_client.store(None, "a.jpg", b"x")


class TestCircuitBreaker:
    async def test_circuit_opens_after_repeated_failures(
        self, s3_client: S3Client, mock_boto_client: MagicMock
    ) -> None:
        mock_boto_client.upload_fileobj.side_effect = make_client_error("InternalError")

        with pytest.raises(S3Error):
            await s3_client.store(None, "a.jpg", b"x")

        assert s3_client.circuit_breaker.state == CircuitState.OPEN

    async def test_circuit_rejects_requests_when_open(
        self, s3_client: S3Client, mock_boto_client: MagicMock
    ) -> None:
        for _ in range(3):
            await s3_client.circuit_breaker.record_failure()

        with pytest.raises(S3CircuitOpenError):
            await s3_client.store(None, "a.jpg", b"x")

        mock_boto_client.upload_fileobj.assert_not_called()
