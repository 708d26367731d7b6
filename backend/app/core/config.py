"""Application configuration loaded from environment variables.

All configuration is via environment variables (or a local .env file).
No hardcoded URLs, ports, or credentials; studio facts and pipeline
thresholds are tunable the same way.
"""

from functools import lru_cache

from pydantic import Field, PostgresDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="AutoBlog Service")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")
    frontend_url: str | None = Field(
        default=None, description="Allowed CORS origin for the admin frontend"
    )

    # Server
    port: int = Field(default=8000, description="Port to bind to")
    host: str = Field(default="0.0.0.0", description="Host to bind to")

    # Database
    database_url: PostgresDsn = Field(
        ...,
        description="PostgreSQL connection string",
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size")
    db_max_overflow: int = Field(default=10, description="Max overflow connections")
    db_pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    db_slow_query_threshold_ms: int = Field(
        default=100, description="Threshold for slow query warnings (ms)"
    )
    db_connect_timeout: int = Field(default=60, description="Connection timeout in seconds")
    db_command_timeout: int = Field(default=60, description="Command timeout in seconds")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format: json or text")

    # OpenAI (assistants + chat completions + vision)
    openai_api_key: str | None = Field(
        default=None, description="OpenAI API key for assistant, completion and vision calls"
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", description="OpenAI API base URL"
    )
    openai_model: str = Field(
        default="gpt-4o", description="Model used for the stateless completion fallback"
    )
    openai_vision_model: str = Field(
        default="gpt-4o", description="Vision-capable model used for image analysis"
    )
    openai_timeout: float = Field(default=60.0, description="Request timeout in seconds")
    openai_max_retries: int = Field(default=3, description="Maximum retry attempts")
    openai_retry_delay: float = Field(
        default=1.0, description="Base delay between retries in seconds"
    )
    openai_max_tokens: int = Field(
        default=4000, description="Maximum tokens in completion responses"
    )
    openai_circuit_failure_threshold: int = Field(
        default=5, description="Failures before circuit opens"
    )
    openai_circuit_recovery_timeout: float = Field(
        default=60.0, description="Seconds before attempting recovery"
    )

    # Generation
    autoblog_assistant_id: str | None = Field(
        default=None, description="Assistant identifier used for the session-based path"
    )
    autoblog_poll_interval: float = Field(
        default=2.0, description="Seconds between run status polls"
    )
    autoblog_max_poll_attempts: int = Field(
        default=30, description="Run status polls before the run counts as timed out"
    )
    autoblog_fallback_temperature: float = Field(
        default=0.7, description="Sampling temperature for the completion fallback"
    )

    # Images
    autoblog_max_images: int = Field(default=3, description="Maximum images per run")
    autoblog_image_max_dimension: int = Field(
        default=1600, description="Bounding box edge for resized images (px)"
    )
    autoblog_jpeg_quality: int = Field(default=75, description="JPEG re-encode quality")
    autoblog_image_bucket: str = Field(
        default="blog-images", description="Bucket that receives processed images"
    )
    autoblog_embed_featured_image: bool = Field(
        default=True, description="Also place the featured image (first upload) in the body"
    )

    # Parsing thresholds
    autoblog_min_body_length: int = Field(
        default=100, description="Minimum characters for an extracted article body"
    )
    autoblog_min_field_length: int = Field(
        default=5, description="Minimum characters for an extracted metadata field"
    )
    autoblog_min_sentence_length: int = Field(
        default=10, description="Minimum characters for a sentence used in synthesis"
    )
    autoblog_min_paragraph_length: int = Field(
        default=20, description="Minimum characters for a line to become a paragraph"
    )
    autoblog_min_content_length: int = Field(
        default=200, description="Minimum characters for a synthesized body"
    )

    # S3-compatible storage
    s3_bucket: str | None = Field(default=None, description="Default S3 bucket name")
    s3_endpoint_url: str | None = Field(
        default=None, description="S3 endpoint URL (LocalStack or S3-compatible provider)"
    )
    s3_access_key: str | None = Field(default=None, description="S3 access key")
    s3_secret_key: str | None = Field(default=None, description="S3 secret key")
    s3_region: str = Field(default="eu-central-1", description="S3 region")
    s3_public_base_url: str | None = Field(
        default=None, description="Public base URL objects are served from"
    )
    s3_timeout: float = Field(default=30.0, description="S3 operation timeout in seconds")
    s3_max_retries: int = Field(default=3, description="Maximum retry attempts for S3")
    s3_retry_delay: float = Field(
        default=1.0, description="Base delay between S3 retries in seconds"
    )
    s3_circuit_failure_threshold: int = Field(
        default=5, description="Failures before circuit opens"
    )
    s3_circuit_recovery_timeout: float = Field(
        default=60.0, description="Seconds before attempting recovery"
    )

    # SerpAPI
    serpapi_key: str | None = Field(default=None, description="SerpAPI key")
    serpapi_timeout: float = Field(default=30.0, description="SerpAPI timeout in seconds")
    serpapi_max_retries: int = Field(default=3, description="SerpAPI retry attempts")

    # Website profile
    autoblog_site_url: str = Field(
        default="https://www.newagefotografie.com",
        description="Studio website scraped for brand voice",
    )
    site_fetch_timeout: float = Field(
        default=15.0, description="Website fetch timeout in seconds"
    )

    # Studio facts
    studio_name: str = Field(default="New Age Fotografie")
    studio_address: str = Field(default="Schönbrunner Str. 25, 1050 Wien, Austria")
    studio_email: str = Field(default="hallo@newagefotografie.com")
    studio_phone: str = Field(default="+43 677 633 99210")
    studio_hours: str = Field(default="Fr-So: 09:00 - 17:00")
    studio_review_query: str = Field(default="New Age Fotografie Wien")

    # Internal call-to-action links
    autoblog_contact_path: str = Field(default="/kontakt")
    autoblog_booking_path: str = Field(default="/warteliste")
    autoblog_gallery_path: str = Field(default="/galerie")

    # Context limits
    autoblog_knowledge_base_limit: int = Field(
        default=20, description="Knowledge base articles included in the prompt"
    )
    autoblog_review_snippet_count: int = Field(
        default=3, description="Review snippets included in the prompt"
    )
    autoblog_review_snippet_length: int = Field(
        default=100, description="Characters kept per review snippet"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
