"""Places the uploaded images inside the formatted article HTML.

Insertion points, in order of preference:

1. h2 sections: with at least two, the first (introductory) section is
   skipped and images are spread evenly over the rest, each placed after
   the first paragraph or list of its section.
2. Paragraph boundaries, spread evenly.
3. Prepended to the article.

UsedImageRegistry is the only place that decides whether an image may be
inserted; it is seeded with every URL already present in the HTML so an
image is never embedded twice. The call-to-action block at the end of the
article never receives images.
"""

import math
import re
from collections.abc import Iterable, Sequence
from html import escape

from app.core.logging import get_logger
from app.services.image_analysis import ImageAnalysis
from app.services.image_ingestion import UploadedImage

logger = get_logger(__name__)

CTA_MARKER = '<div class="blog-cta">'

ALT_TEXTS = {
    "newborn": "Professionelle Neugeborenenfotografie bei New Age Fotografie Wien",
    "maternity": "Babybauch Fotoshooting in Wien bei New Age Fotografie",
    "family": "Familienfotografie Session bei New Age Fotografie Wien",
    "business": "Business Headshots bei New Age Fotografie Wien",
    "couple": "Paarshooting in Wien bei New Age Fotografie",
}
DEFAULT_ALT_TEXT = "Professionelle Fotografie bei New Age Fotografie Wien - Session"

_IMG_SRC = re.compile(r"<img\b[^>]*\bsrc\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)
_H2 = re.compile(r"<h2\b[^>]*>.*?</h2>", re.IGNORECASE | re.DOTALL)
_BLOCK_END = re.compile(r"</(?:p|ul|ol)>", re.IGNORECASE)
_PARAGRAPH_END = re.compile(r"</p>", re.IGNORECASE)


class UsedImageRegistry:
    """Set of image URLs already present in the article."""

    def __init__(self, urls: Iterable[str] = ()) -> None:
        self._urls: set[str] = set(urls)

    @classmethod
    def from_html(cls, html: str) -> "UsedImageRegistry":
        return cls(match.group(1) for match in _IMG_SRC.finditer(html or ""))

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def __len__(self) -> int:
        return len(self._urls)

    def claim(self, url: str) -> bool:
        """Mark url as used. False if it was already used."""
        if url in self._urls:
            return False
        self._urls.add(url)
        return True


def alt_text(session_type: str, number: int) -> str:
    """German alt text for the number-th image of a session."""
    return f"{ALT_TEXTS.get(session_type, DEFAULT_ALT_TEXT)} - Bild {number}"


def figure_markup(url: str, alt: str) -> str:
    return (
        '<figure class="blog-image">'
        f'<img src="{escape(url, quote=True)}" alt="{escape(alt, quote=True)}" loading="lazy">'
        "</figure>"
    )


def _insert_all(html: str, insertions: list[tuple[int, str]]) -> str:
    grouped: dict[int, list[str]] = {}
    for position, markup in insertions:
        grouped.setdefault(position, []).append(markup)
    # Back to front so earlier offsets stay valid
    for position in sorted(grouped, reverse=True):
        html = html[:position] + "".join(grouped[position]) + html[position:]
    return html


def _section_insertions(html: str, figures: list[str]) -> list[tuple[int, str]] | None:
    headings = list(_H2.finditer(html))
    if len(headings) < 2:
        return None

    targets = headings[1:]
    per_section = math.ceil(len(figures) / len(targets))
    insertions: list[tuple[int, str]] = []
    for index, heading in enumerate(targets):
        chunk = figures[index * per_section : (index + 1) * per_section]
        if not chunk:
            break
        section_end = (
            targets[index + 1].start() if index + 1 < len(targets) else len(html)
        )
        block_end = _BLOCK_END.search(html, heading.end(), section_end)
        position = block_end.end() if block_end else heading.end()
        insertions.append((position, "".join(chunk)))
    return insertions


def _paragraph_insertions(html: str, figures: list[str]) -> list[tuple[int, str]] | None:
    paragraph_ends = [match.end() for match in _PARAGRAPH_END.finditer(html)]
    if not paragraph_ends:
        return None

    step = max(1, math.ceil(len(paragraph_ends) / len(figures)))
    insertions: list[tuple[int, str]] = []
    for index, figure in enumerate(figures):
        paragraph = min(index * step, len(paragraph_ends) - 1)
        insertions.append((paragraph_ends[paragraph], figure))
    return insertions


def embed_images(
    html: str,
    images: Sequence[UploadedImage],
    analysis: ImageAnalysis,
    registry: UsedImageRegistry | None = None,
) -> str:
    """Insert figures for images not yet present in html.

    Args:
        html: Formatted article HTML.
        images: Ingested images in upload order.
        analysis: Image analysis; its session type selects the alt text.
        registry: Used-URL registry; seeded from html when omitted.

    Returns:
        HTML in which every image URL appears at most once.
    """
    registry = registry if registry is not None else UsedImageRegistry.from_html(html)

    figures: list[str] = []
    for number, image in enumerate(images, start=1):
        if not registry.claim(image.public_url):
            continue
        figures.append(figure_markup(image.public_url, alt_text(analysis.session_type, number)))

    if not figures:
        return html

    cta_start = html.find(CTA_MARKER)
    article, cta = (html, "") if cta_start == -1 else (html[:cta_start], html[cta_start:])

    strategy = "sections"
    insertions = _section_insertions(article, figures)
    if insertions is None:
        strategy = "paragraphs"
        insertions = _paragraph_insertions(article, figures)

    if insertions is None:
        strategy = "prepend"
        article = "".join(figures) + article
    else:
        article = _insert_all(article, insertions)

    logger.info(
        "Images embedded",
        extra={"strategy": strategy, "image_count": len(figures)},
    )
    return article + cta
