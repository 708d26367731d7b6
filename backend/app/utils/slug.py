"""URL slug utilities.

Slugs are lowercase ASCII letters, digits and single hyphens, with no
leading or trailing hyphen. German umlauts are transliterated (ä -> ae)
and other accented letters are folded to their base letter before the
character filter runs.
"""

import re
import unicodedata
from collections.abc import Iterable

SLUG_MAX_LENGTH = 50
DEFAULT_SLUG = "blog-post"
SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")

_TRANSLITERATIONS = {"ä": "ae", "ö": "oe", "ü": "ue", "ß": "ss"}


def _transliterate(value: str) -> str:
    for char, replacement in _TRANSLITERATIONS.items():
        value = value.replace(char, replacement)
    normalized = unicodedata.normalize("NFKD", value)
    return normalized.encode("ascii", "ignore").decode("ascii")


def clean_slug(value: str | None, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Normalize arbitrary text into a URL-safe slug.

    Returns an empty string when nothing usable remains; callers decide
    on the default.
    """
    if not value:
        return ""

    slug = _transliterate(value.strip().lower())
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug).strip("-")

    if len(slug) > max_length:
        slug = slug[:max_length].rstrip("-")
    return slug


def is_valid_slug(value: str) -> bool:
    """Check a slug against the allowed character set."""
    return bool(value) and SLUG_PATTERN.match(value) is not None


def generate_unique_slug(base: str, existing: Iterable[str]) -> str:
    """Append -2, -3, ... to base until it is absent from existing.

    Args:
        base: Already-cleaned slug. Empty values fall back to DEFAULT_SLUG.
        existing: Slugs currently taken.

    Returns:
        A slug not contained in existing.
    """
    taken = set(existing)
    slug = base or DEFAULT_SLUG
    if slug not in taken:
        return slug

    counter = 2
    while f"{slug}-{counter}" in taken:
        counter += 1
    return f"{slug}-{counter}"
