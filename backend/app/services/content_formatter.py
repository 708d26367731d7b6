"""Markdown-ish body to sanitized publishable HTML.

The parsed body mixes markdown headings, "H2:" style label headings, list
lines, plain paragraphs and occasionally ready HTML. format_content turns
it into clean HTML line by line, sanitizes the result and appends the
call-to-action block with the studio's internal links.
"""

import re
from dataclasses import dataclass

from app.core.config import Settings, get_settings
from app.core.logging import get_logger
from app.utils.html_sanitizer import sanitize_html, strip_dangerous_text

logger = get_logger(__name__)

CTA_HEADING = "Ihr nächster Schritt"
MIN_PARAGRAPH_LENGTH = 20

_PLACEHOLDER = re.compile(r"\[(?:Image|Foto|Bild|Photo)\s*\d+\]", re.IGNORECASE)
_MARKDOWN_HEADING = re.compile(r"^(#{1,6})\s*(.+?)\s*#*$")
_LABEL_HEADING = re.compile(r"^\**\s*H([1-6])\s*:\s*\**\s*(.+)$", re.IGNORECASE)
_UNORDERED_ITEM = re.compile(r"^[-*+•]\s+(.+)$")
_ORDERED_ITEM = re.compile(r"^\d+[.)]\s+(.+)$")
_HTML_BLOCK = re.compile(
    r"^</?(?:h[1-6]|p|ul|ol|li|div|figure|figcaption|img|blockquote|table|thead|tbody|tr|td|th|section|hr|br)\b",
    re.IGNORECASE,
)

_LINK = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")
_BOLD = re.compile(r"\*\*(.+?)\*\*")
_ITALIC = re.compile(r"(?<![*\w])\*(?!\s)(.+?)(?<!\s)\*(?![*\w])")
_PRICE = re.compile(
    r"(?<!<strong>)(€\s?\d+(?:[.,]\d+)*(?:,-)?|(?<![\d.,])\d+(?:[.,]\d+)*\s?€)"
    r"(?!\d|[.,]\d|</strong>)"
)

# Leftover label prefixes and heading hashes that must not reach the output
_LEFTOVER_LABEL = re.compile(r"\bH[1-6]\s*:\s*", re.IGNORECASE)
_LEFTOVER_HASHES = re.compile(r"#{3,}")


@dataclass(frozen=True)
class CtaLinks:
    """Internal links referenced by the call-to-action block."""

    contact: str = "/kontakt"
    booking: str = "/warteliste"
    gallery: str = "/galerie"

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "CtaLinks":
        settings = settings or get_settings()
        return cls(
            contact=settings.autoblog_contact_path,
            booking=settings.autoblog_booking_path,
            gallery=settings.autoblog_gallery_path,
        )


def format_inline(text: str) -> str:
    """Links, bold, italic and price emphasis inside one line."""
    text = _LINK.sub(r'<a href="\2">\1</a>', text)
    text = _BOLD.sub(r"<strong>\1</strong>", text)
    text = _ITALIC.sub(r"<em>\1</em>", text)
    return _PRICE.sub(r"<strong>\1</strong>", text)


def _heading(level: int, text: str) -> str:
    level = min(level, 3)
    text = text.replace("**", "").strip().rstrip(":")
    text = _LEFTOVER_LABEL.sub("", text)
    return f"<h{level}>{format_inline(text)}</h{level}>"


def build_cta_block(links: CtaLinks) -> str:
    return (
        '<div class="blog-cta">'
        f"<h2>{CTA_HEADING}</h2>"
        "<p>Sie möchten solche Erinnerungen auch für Ihre Familie festhalten? "
        f'<a href="{links.contact}">Kontaktieren Sie uns</a> für ein unverbindliches Gespräch, '
        f'<a href="{links.booking}">sichern Sie sich einen Termin</a> oder lassen Sie sich in '
        f'unserer <a href="{links.gallery}">Galerie</a> inspirieren.</p>'
        "</div>"
    )


def body_to_html(body: str) -> str:
    """Convert the body line by line. No sanitizing here."""
    body = _PLACEHOLDER.sub("", body or "")
    blocks: list[str] = []
    list_tag: str | None = None
    list_items: list[str] = []

    def flush_list() -> None:
        nonlocal list_tag, list_items
        if list_tag and list_items:
            items = "".join(f"<li>{item}</li>" for item in list_items)
            blocks.append(f"<{list_tag}>{items}</{list_tag}>")
        list_tag = None
        list_items = []

    for raw_line in body.splitlines():
        line = raw_line.strip()
        if not line:
            flush_list()
            continue

        if _HTML_BLOCK.match(line):
            flush_list()
            blocks.append(line)
            continue

        heading = _MARKDOWN_HEADING.match(line)
        if heading:
            flush_list()
            text = heading.group(2)
            label = _LABEL_HEADING.match(text)
            if label:
                text = label.group(2)
            blocks.append(_heading(len(heading.group(1)), text))
            continue

        label = _LABEL_HEADING.match(line)
        if label:
            flush_list()
            blocks.append(_heading(int(label.group(1)), label.group(2)))
            continue

        unordered = _UNORDERED_ITEM.match(line)
        ordered = None if unordered else _ORDERED_ITEM.match(line)
        item = unordered or ordered
        if item:
            tag = "ul" if unordered else "ol"
            if list_tag != tag:
                flush_list()
                list_tag = tag
            list_items.append(format_inline(item.group(1).strip()))
            continue

        flush_list()
        if len(line) > MIN_PARAGRAPH_LENGTH:
            blocks.append(f"<p>{format_inline(line)}</p>")

    flush_list()
    return "\n".join(blocks)


def strip_leftover_markup(html: str) -> str:
    """Remove label prefixes and heading hashes from serialized HTML.

    Runs after sanitizing because the parser decodes entities such as
    &#72;2: into H2:. Each removal can join text into a new match, so the
    passes repeat until the HTML stops changing.
    """
    while True:
        cleaned = _LEFTOVER_HASHES.sub("", _LEFTOVER_LABEL.sub("", html))
        cleaned = strip_dangerous_text(cleaned)
        if cleaned == html:
            return cleaned
        html = cleaned


def format_content(body: str, links: CtaLinks | None = None) -> str:
    """Produce sanitized HTML for a parsed body, ending with the CTA block.

    Args:
        body: Parsed body text.
        links: Internal CTA links; defaults come from settings.

    Returns:
        HTML fragment free of label prefixes, heading hashes and active content.
    """
    links = links or CtaLinks.from_settings()

    html = strip_leftover_markup(sanitize_html(body_to_html(body)))

    if CTA_HEADING not in html:
        html = f"{html}\n{build_cta_block(links)}" if html else build_cta_block(links)

    logger.debug("Content formatted", extra={"html_length": len(html)})
    return html
