"""HTML sanitizer for generated blog content.

Generated HTML is untrusted. This module removes active content no matter
how it got into the markup:
- script, iframe, object, embed, style (and similar) elements
- inline event-handler attributes (onclick, onerror, ...)
- javascript:/vbscript: URLs and data: URLs that are not raster images
- CSS expression()/javascript: inside style attributes
- HTML comments

External links get rel="noopener noreferrer". A final text-level pass
guarantees that the serialized output contains no "<script", "on...="
handler or "javascript:" substring, even inside text nodes.
"""

import re

from bs4 import BeautifulSoup, Comment

DISALLOWED_TAGS = (
    "script",
    "iframe",
    "object",
    "embed",
    "style",
    "applet",
    "frame",
    "frameset",
    "base",
    "link",
    "meta",
)

URL_ATTRIBUTES = ("href", "src", "action", "formaction", "poster", "xlink:href", "background")

_DANGEROUS_SCHEME = re.compile(r"^(javascript|vbscript):", re.IGNORECASE)
_SAFE_DATA_IMAGE = re.compile(r"^data:image/(png|jpe?g|gif|webp);", re.IGNORECASE)
_STYLE_EXPRESSION = re.compile(r"expression\s*\(|javascript\s*:|url\s*\(\s*['\"]?\s*javascript", re.IGNORECASE)

_TEXT_SCRIPT_TAG = re.compile(r"<\s*/?\s*script", re.IGNORECASE)
_TEXT_HANDLER = re.compile(r"\bon[a-z]+\s*=", re.IGNORECASE)
_TEXT_SCHEME = re.compile(r"(javascript|vbscript)\s*:", re.IGNORECASE)


def _normalize_url(value: str) -> str:
    """Strip whitespace and control characters browsers ignore inside schemes."""
    return re.sub(r"[\s\x00-\x1f]+", "", value)


def _is_dangerous_url(attr: str, value: str) -> bool:
    url = _normalize_url(value)
    if _DANGEROUS_SCHEME.match(url):
        return True
    if url.lower().startswith("data:"):
        return not (attr == "src" and _SAFE_DATA_IMAGE.match(url))
    return False


def sanitize_html(html: str) -> str:
    """Remove active content from an HTML fragment.

    Args:
        html: Untrusted HTML fragment.

    Returns:
        Sanitized HTML fragment.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for tag in soup.find_all(DISALLOWED_TAGS):
        tag.decompose()

    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    for tag in soup.find_all(True):
        for attr in list(tag.attrs):
            value = tag.attrs[attr]
            text_value = " ".join(value) if isinstance(value, list) else str(value)

            if attr.lower().startswith("on"):
                del tag.attrs[attr]
            elif attr.lower() in URL_ATTRIBUTES and _is_dangerous_url(attr.lower(), text_value):
                del tag.attrs[attr]
            elif attr.lower() == "style" and _STYLE_EXPRESSION.search(text_value):
                del tag.attrs[attr]

        if tag.name == "a" and str(tag.get("href", "")).lower().startswith(("http://", "https://")):
            tag["rel"] = "noopener noreferrer"

    return strip_dangerous_text(str(soup))


def strip_dangerous_text(html: str) -> str:
    """Text-level pass removing script tags, handler assignments and script URLs."""
    cleaned = _TEXT_SCRIPT_TAG.sub("", html)
    cleaned = _TEXT_HANDLER.sub("", cleaned)
    return _TEXT_SCHEME.sub("", cleaned)
