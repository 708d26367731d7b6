"""Integrations layer - External service clients.

Integrations handle communication with external APIs and services.
They abstract the details of external service protocols.
"""

from app.integrations.openai_assistant import (
    CompletionResult,
    OpenAIAuthError,
    OpenAICircuitOpenError,
    OpenAIClient,
    OpenAIError,
    OpenAIRateLimitError,
    OpenAITimeoutError,
    RunStatus,
    ThreadMessage,
    close_openai,
    get_openai,
    init_openai,
    openai_client,
)
from app.integrations.s3 import (
    S3AuthError,
    S3CircuitOpenError,
    S3Client,
    S3ConnectionError,
    S3Error,
    S3NotFoundError,
    S3TimeoutError,
    close_s3,
    get_s3,
    init_s3,
    s3_client,
)
from app.integrations.serpapi import (
    SerpAPICircuitOpenError,
    SerpAPIClient,
    SerpAPIError,
    SerpResult,
    close_serpapi,
    get_serpapi,
    init_serpapi,
    serpapi_client,
)
from app.integrations.website import (
    PageFetchResult,
    WebsiteClient,
    WebsiteFetchError,
    close_website,
    get_website,
    html_to_text,
    init_website,
    website_client,
)

__all__ = [
    # OpenAI
    "CompletionResult",
    "OpenAIAuthError",
    "OpenAICircuitOpenError",
    "OpenAIClient",
    "OpenAIError",
    "OpenAIRateLimitError",
    "OpenAITimeoutError",
    "RunStatus",
    "ThreadMessage",
    "close_openai",
    "get_openai",
    "init_openai",
    "openai_client",
    # S3
    "S3AuthError",
    "S3CircuitOpenError",
    "S3Client",
    "S3ConnectionError",
    "S3Error",
    "S3NotFoundError",
    "S3TimeoutError",
    "close_s3",
    "get_s3",
    "init_s3",
    "s3_client",
    # SerpAPI
    "SerpAPICircuitOpenError",
    "SerpAPIClient",
    "SerpAPIError",
    "SerpResult",
    "close_serpapi",
    "get_serpapi",
    "init_serpapi",
    "serpapi_client",
    # Website
    "PageFetchResult",
    "WebsiteClient",
    "WebsiteFetchError",
    "close_website",
    "get_website",
    "html_to_text",
    "init_website",
    "website_client",
]
