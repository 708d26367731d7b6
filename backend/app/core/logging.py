"""Structured logging configuration.

All logs go to stdout for the platform to capture.
Uses JSON format for structured logging in production.

ERROR LOGGING REQUIREMENTS:
- Database connection errors with masked connection string
- Slow queries (>100ms) at WARNING level
- Transaction failures with rollback context
- OpenAI calls with model, timing, retry attempt and thread/run ids
- API keys never appear in any log record
- Degraded context sources and parse fallbacks at WARNING level
"""

import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

from pythonjsonlogger import jsonlogger

from app.core.config import get_settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined]
    """Custom JSON formatter with additional fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(UTC).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)


def mask_connection_string(conn_str: str) -> str:
    """Mask the password in a user:password@host connection string."""
    if not conn_str:
        return ""
    return re.sub(r"(://[^:]+:)([^@]+)(@)", r"\1****\3", conn_str)


def setup_logging() -> None:
    """Configure application logging.

    Outputs to stdout only. Uses JSON format in production,
    text format in development.
    """
    settings = get_settings()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)

    formatter: logging.Formatter
    if settings.log_format == "json":
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)


class DatabaseLogger:
    """Logger for database operations with required error logging."""

    def __init__(self) -> None:
        self.logger = get_logger("database")

    def connection_error(self, error: Exception, connection_string: str) -> None:
        """Log database connection error with masked connection string."""
        self.logger.error(
            "Database connection failed",
            extra={
                "connection_string": mask_connection_string(connection_string),
                "error_type": type(error).__name__,
                "error_message": str(error),
            },
        )

    def slow_query(
        self, query: str, duration_ms: float, table: str | None = None
    ) -> None:
        """Log slow query at WARNING level."""
        self.logger.warning(
            "Slow query detected",
            extra={
                "duration_ms": duration_ms,
                "query": query[:500],
                "table": table,
            },
        )

    def transaction_failure(
        self, error: Exception, table: str | None = None, context: str | None = None
    ) -> None:
        """Log transaction failure with rollback context."""
        self.logger.error(
            "Transaction failed, rolling back",
            extra={
                "error_type": type(error).__name__,
                "error_message": str(error),
                "table": table,
                "rollback_context": context,
            },
        )


# Singleton database logger
db_logger = DatabaseLogger()


class OpenAILogger:
    """Logger for OpenAI assistant, completion and vision calls.

    Logs all outbound API calls with endpoint, method, timing.
    Logs request/response bodies at DEBUG level (truncated).
    Handles timeouts, rate limits (429), auth failures (401/403).
    Includes retry attempt number and thread/run ids in logs.
    """

    def __init__(self) -> None:
        self.logger = get_logger("openai")

    def api_call_start(
        self,
        method: str,
        endpoint: str,
        retry_attempt: int = 0,
    ) -> None:
        """Log outbound API call start at DEBUG level."""
        self.logger.debug(
            f"OpenAI API call: {method} {endpoint}",
            extra={
                "method": method,
                "endpoint": endpoint,
                "retry_attempt": retry_attempt,
            },
        )

    def api_call_success(
        self,
        method: str,
        endpoint: str,
        duration_ms: float,
        request_id: str | None = None,
    ) -> None:
        """Log successful API call at DEBUG level."""
        self.logger.debug(
            f"OpenAI API call completed: {method} {endpoint}",
            extra={
                "method": method,
                "endpoint": endpoint,
                "duration_ms": round(duration_ms, 2),
                "request_id": request_id,
                "success": True,
            },
        )

    def api_call_error(
        self,
        method: str,
        endpoint: str,
        duration_ms: float,
        status_code: int | None,
        error: str,
        error_type: str,
        retry_attempt: int = 0,
        request_id: str | None = None,
    ) -> None:
        """Log failed API call at WARNING (4xx) or ERROR (5xx/transport)."""
        level = logging.WARNING if status_code and 400 <= status_code < 500 else logging.ERROR
        self.logger.log(
            level,
            f"OpenAI API call failed: {method} {endpoint}",
            extra={
                "method": method,
                "endpoint": endpoint,
                "duration_ms": round(duration_ms, 2),
                "status_code": status_code,
                "error": error,
                "error_type": error_type,
                "retry_attempt": retry_attempt,
                "request_id": request_id,
                "success": False,
            },
        )

    def timeout(self, endpoint: str, timeout_seconds: float) -> None:
        """Log request timeout at WARNING level."""
        self.logger.warning(
            "OpenAI API request timeout",
            extra={"endpoint": endpoint, "timeout_seconds": timeout_seconds},
        )

    def rate_limit(self, endpoint: str, retry_after: float | None = None) -> None:
        """Log rate limit (429) at WARNING level."""
        self.logger.warning(
            "OpenAI API rate limit hit (429)",
            extra={"endpoint": endpoint, "retry_after_seconds": retry_after},
        )

    def auth_failure(self, status_code: int) -> None:
        """Log authentication failure (401/403) at WARNING level."""
        self.logger.warning(
            f"OpenAI API authentication failed ({status_code})",
            extra={"status_code": status_code},
        )

    def request_body(self, endpoint: str, prompt: str) -> None:
        """Log request prompt at DEBUG level (truncated)."""
        self.logger.debug(
            "OpenAI API request body",
            extra={"endpoint": endpoint, "prompt": self._truncate_text(prompt, 500)},
        )

    def response_body(self, endpoint: str, text: str, duration_ms: float) -> None:
        """Log response text at DEBUG level (truncated)."""
        self.logger.debug(
            "OpenAI API response body",
            extra={
                "endpoint": endpoint,
                "response_text": self._truncate_text(text, 500),
                "response_length": len(text),
                "duration_ms": round(duration_ms, 2),
            },
        )

    def _truncate_text(self, text: str, max_length: int = 500) -> str:
        """Truncate text for logging."""
        if len(text) <= max_length:
            return text
        return f"{text[:max_length]}... (truncated, {len(text)} chars)"

    def token_usage(
        self, model: str, prompt_tokens: int | None, completion_tokens: int | None
    ) -> None:
        """Log token usage for quota tracking."""
        self.logger.info(
            "OpenAI token usage",
            extra={
                "model": model,
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "total_tokens": (prompt_tokens or 0) + (completion_tokens or 0),
            },
        )

    def run_poll(
        self, thread_id: str, run_id: str, status: str, attempt: int, max_attempts: int
    ) -> None:
        """Log one assistant run status poll at DEBUG level."""
        self.logger.debug(
            "Assistant run status polled",
            extra={
                "thread_id": thread_id,
                "run_id": run_id,
                "run_status": status,
                "poll_attempt": attempt,
                "max_poll_attempts": max_attempts,
            },
        )

    def graceful_fallback(self, operation: str, reason: str) -> None:
        """Log graceful fallback when the primary path is unavailable."""
        self.logger.warning(
            "OpenAI primary path unavailable, using fallback",
            extra={"operation": operation, "reason": reason},
        )


# Singleton OpenAI logger
openai_logger = OpenAILogger()


class AutoBlogLogger:
    """Logger for AutoBlog pipeline stages.

    Stage timing at INFO, degraded sources and parse fallbacks at WARNING.
    Fallback details stay in logs and never reach the caller.
    """

    def __init__(self) -> None:
        self.logger = get_logger("autoblog")

    def stage_start(self, stage: str, **context: Any) -> None:
        """Log pipeline stage start."""
        self.logger.info(f"AutoBlog stage started: {stage}", extra={"stage": stage, **context})

    def stage_complete(self, stage: str, duration_ms: float, **context: Any) -> None:
        """Log pipeline stage completion with timing."""
        self.logger.info(
            f"AutoBlog stage completed: {stage}",
            extra={"stage": stage, "duration_ms": round(duration_ms, 2), **context},
        )

    def source_degraded(self, source: str, reason: str) -> None:
        """Log a context source that fell back to its default text."""
        self.logger.warning(
            "Context source degraded, using fallback",
            extra={"source": source, "reason": reason},
        )

    def parse_strategy(self, strategy: str, confidence: str, body_length: int) -> None:
        """Log which parse strategy produced the document."""
        level = logging.INFO if confidence == "high" else logging.WARNING
        self.logger.log(
            level,
            f"Response parsed via {strategy}",
            extra={
                "strategy": strategy,
                "format_confidence": confidence,
                "body_length": body_length,
            },
        )

    def run_failed(self, error_type: str, error: str) -> None:
        """Log a run terminated without a document."""
        self.logger.error(
            "AutoBlog run failed",
            extra={"error_type": error_type, "error": error},
        )


# Singleton AutoBlog logger
autoblog_logger = AutoBlogLogger()
