"""Schemas layer - Pydantic models for API validation.

Schemas define the shape of data for API requests and responses.
They handle validation, serialization, and documentation.
"""

from app.schemas.autoblog import (
    PUBLISH_OPTIONS,
    AutoBlogRequest,
    AutoBlogResponse,
    BlogPostResponse,
)

__all__ = [
    "PUBLISH_OPTIONS",
    "AutoBlogRequest",
    "AutoBlogResponse",
    "BlogPostResponse",
]
