"""Utility modules for the application.

This package contains shared utility functions and classes.
"""

from app.utils.html_sanitizer import sanitize_html, strip_dangerous_text
from app.utils.slug import (
    DEFAULT_SLUG,
    SLUG_MAX_LENGTH,
    clean_slug,
    generate_unique_slug,
    is_valid_slug,
)

__all__ = [
    # HTML sanitizer
    "sanitize_html",
    "strip_dangerous_text",
    # Slugs
    "DEFAULT_SLUG",
    "SLUG_MAX_LENGTH",
    "clean_slug",
    "generate_unique_slug",
    "is_valid_slug",
]
