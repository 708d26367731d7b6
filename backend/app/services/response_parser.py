"""Response parser: turns free-form generated text into a ParsedDocument.

The generator's output format is not guaranteed, so parsing is a chain of
strategies tried in order of decreasing confidence. Each strategy is a pure
function returning a ParsedDocument or None; the first hit wins and the
last one always produces a document:

1. try_marker_extraction: labeled body block ("**Blog Article:**", ...)
2. try_section_split: longest locale-matching segment between bold labels
3. try_synthesis: sentences redistributed under fixed headings

Metadata fields (title, slug, meta description, tags, ...) are extracted
once up front by extract_marker_fields and combined with whatever body the
chain produces; missing fields get fixed defaults.

Known over-production (social posts, compliance checklists, notes) is
removed before any extraction by strip_unwanted_sections.
"""

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from app.core.config import Settings, get_settings
from app.core.logging import autoblog_logger, get_logger
from app.utils.slug import DEFAULT_SLUG, SLUG_MAX_LENGTH, clean_slug, generate_unique_slug

logger = get_logger(__name__)

# Output limits
TITLE_MAX_LENGTH = 140
EXCERPT_MAX_LENGTH = 180
SEO_TITLE_MAX_LENGTH = 70
META_DESCRIPTION_MAX_LENGTH = 160
KEYPHRASE_MAX_LENGTH = 60
MAX_TAGS = 10

# Defaults
DEFAULT_TITLE = "Familienfotografie in Wien - Authentische Momente"
DEFAULT_META_DESCRIPTION = (
    "Professionelle Familienfotografie in Wien für unvergessliche Erinnerungen. "
    "Jetzt Termin sichern!"
)
DEFAULT_TAGS = ("familienfotografie", "wien", "photography", "family")
SEO_TITLE_SUFFIX = " | New Age Fotografie Wien"

SYNTHESIS_HEADINGS = (
    "Ihre Fotosession in Wien",
    "Was diese Bilder besonders macht",
    "Unser Ansatz im Studio",
    "Tipps für Ihr eigenes Shooting",
    "Erinnerungen, die bleiben",
)

PADDING_SENTENCES = (
    "Bei New Age Fotografie in Wien steht jede Familie mit ihrer eigenen Geschichte im Mittelpunkt.",
    "Unser Studio in der Schönbrunner Straße bietet eine entspannte Atmosphäre für große und kleine Gäste.",
    "Wir nehmen uns Zeit, damit echte Momente entstehen und niemand für die Kamera posieren muss.",
    "Natürliches Licht und eine ruhige Begleitung sorgen für Bilder, die authentisch wirken.",
    "Nach dem Shooting wählen Sie in Ruhe Ihre Lieblingsbilder aus der Online-Galerie aus.",
    "Professionelle Bearbeitung macht aus jedem Foto eine Erinnerung für viele Jahre.",
)

LOCALE_WORDS = {
    "de": re.compile(r"\b(?:Wien|Fotografi\w*|Familie\w*|ich|wir|Sie|das|die|der)\b", re.IGNORECASE),
    "en": re.compile(r"\b(?:the|and|you|we|our)\b", re.IGNORECASE),
}

APPENDED_SECTION_HEADINGS = {
    "de": ("Das Wichtigste in Kürze", "Das sagen unsere Kunden"),
    "en": ("Key Takeaways", "What Our Clients Say"),
}


class FormatConfidence(str, Enum):
    """How much of the document came from explicit markers."""

    HIGH = "high"
    LOW = "low"


class ParseStrategy(str, Enum):
    """Strategy that produced the body."""

    MARKER = "marker"
    SECTION_SPLIT = "section_split"
    SYNTHESIS = "synthesis"


@dataclass
class ParserConfig:
    """Tunable thresholds for parsing."""

    min_body_length: int = 100
    min_field_length: int = 5
    min_sentence_length: int = 10
    min_content_length: int = 200
    language: str = "de"

    @classmethod
    def from_settings(cls, settings: Settings | None = None, language: str = "de") -> "ParserConfig":
        settings = settings or get_settings()
        return cls(
            min_body_length=settings.autoblog_min_body_length,
            min_field_length=settings.autoblog_min_field_length,
            min_sentence_length=settings.autoblog_min_sentence_length,
            min_content_length=settings.autoblog_min_content_length,
            language=language,
        )


@dataclass
class MarkerFields:
    """Metadata recovered from labeled markers. None means not found."""

    title: str | None = None
    seo_title: str | None = None
    slug: str | None = None
    meta_description: str | None = None
    excerpt: str | None = None
    keyphrase: str | None = None
    tags: list[str] = field(default_factory=list)
    outline: str | None = None
    key_takeaways: str | None = None
    review_snippets: str | None = None

    @property
    def has_seo_field(self) -> bool:
        return bool(self.slug or self.meta_description or self.seo_title or self.tags)


@dataclass
class ParsedDocument:
    """Structured blog document. content_html holds the body markup."""

    title: str
    seo_title: str
    slug: str
    meta_description: str
    excerpt: str
    tags: list[str]
    keyphrase: str
    content_html: str
    format_confidence: FormatConfidence
    strategy: ParseStrategy


# -----------------------------------------------------------------------------
# Unwanted sections
# -----------------------------------------------------------------------------

_NEXT_BOLD = r"(?=\*\*[A-Z]|\Z)"

UNWANTED_PATTERNS = (
    # Social media post blocks
    re.compile(r"\*\*?Social (?:Media )?Posts?:?\*\*?[\s\S]*?" + _NEXT_BOLD, re.IGNORECASE),
    re.compile(r"(?:^|\n)Social (?:Media )?Posts?:[\s\S]*?(?=\n\*\*|\Z)", re.IGNORECASE),
    # Emoji lines carrying hashtags
    re.compile(r"^[^\n]*[✨👶📸💕🎉❤️][^\n]*#\w[^\n]*\n?", re.MULTILINE),
    # YOAST / compliance blocks
    re.compile(r"\*\*?YOAST(?: SEO)? Compliance:?\*\*?[\s\S]*?" + _NEXT_BOLD, re.IGNORECASE),
    re.compile(r"(?:^|\n)YOAST(?: SEO)? Compliance:[\s\S]*?(?=\n\*\*|\Z)", re.IGNORECASE),
    # Checklist lines
    re.compile(r"^[ \t]*✅[^\n]*\n?", re.MULTILINE),
    # Notes and bonus material
    re.compile(
        r"\*\*?(?:Additional Notes?|Extra Content|Bonus Content|SEO Notes?):?\*\*?[\s\S]*?"
        + _NEXT_BOLD,
        re.IGNORECASE,
    ),
)


def strip_unwanted_sections(raw: str) -> str:
    """Remove blocks the generator adds beyond the requested format."""
    cleaned = raw or ""
    for pattern in UNWANTED_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return re.sub(r"\n{3,}", "\n\n", cleaned).strip()


# -----------------------------------------------------------------------------
# Marker fields
# -----------------------------------------------------------------------------


def _bold(label: str) -> str:
    """'**Label:**' or '**Label**:' followed by the value on this or the next line."""
    return rf"\*\*{label}:?\*\*:?[ \t]*(?:\n[ \t]*)?(?!\*\*)(.+)"


def _plain(label: str) -> str:
    return rf"^[ \t]*{label}:[ \t]*(?!\*\*)(.+)$"


# Most specific first
TITLE_PATTERNS = (
    re.compile(_bold(r"Headline \(H1\)"), re.IGNORECASE),
    re.compile(_bold(r"H1"), re.IGNORECASE),
    re.compile(_bold(r"Title"), re.IGNORECASE),
    re.compile(_plain(r"Headline \(H1\)"), re.IGNORECASE | re.MULTILINE),
    re.compile(_plain(r"Title"), re.IGNORECASE | re.MULTILINE),
    re.compile(r"^#[ \t]+(.+)$", re.MULTILINE),
)

SEO_TITLE_PATTERNS = (
    re.compile(_bold(r"SEO Title"), re.IGNORECASE),
    re.compile(_plain(r"SEO Title"), re.IGNORECASE | re.MULTILINE),
)

SLUG_PATTERNS = (
    re.compile(_bold(r"(?:URL )?Slug"), re.IGNORECASE),
    re.compile(_plain(r"(?:URL )?Slug"), re.IGNORECASE | re.MULTILINE),
)

META_DESCRIPTION_PATTERNS = (
    re.compile(_bold(r"Meta Description"), re.IGNORECASE),
    re.compile(_plain(r"Meta Description"), re.IGNORECASE | re.MULTILINE),
    re.compile(_plain(r"Meta"), re.IGNORECASE | re.MULTILINE),
)

EXCERPT_PATTERNS = (
    re.compile(_bold(r"Excerpt"), re.IGNORECASE),
    re.compile(_plain(r"Excerpt"), re.IGNORECASE | re.MULTILINE),
)

KEYPHRASE_PATTERNS = (
    re.compile(_bold(r"(?:Focus |Fokus-)?Keyphrase"), re.IGNORECASE),
    re.compile(_plain(r"(?:Focus |Fokus-)?Keyphrase"), re.IGNORECASE | re.MULTILINE),
)

TAGS_PATTERNS = (
    re.compile(_bold(r"Tags"), re.IGNORECASE),
    re.compile(r"tags:[ \t]*\[([^\]]+)\]", re.IGNORECASE),
    re.compile(_plain(r"Tags"), re.IGNORECASE | re.MULTILINE),
    re.compile(_plain(r"Keywords"), re.IGNORECASE | re.MULTILINE),
)

_BLOCK_END = r"(?=\n[ \t]*\*\*[A-Z][^*\n]{0,60}\*\*|\Z)"


def _block(label: str) -> re.Pattern[str]:
    return re.compile(
        rf"\*\*{label}:?\*\*:?[ \t]*\n?([\s\S]*?){_BLOCK_END}", re.IGNORECASE
    )


OUTLINE_PATTERNS = (_block(r"Outline"),)
KEY_TAKEAWAYS_PATTERNS = (_block(r"Key Takeaways"), _block(r"Das Wichtigste(?: in Kürze)?"))
REVIEW_SNIPPETS_PATTERNS = (_block(r"Review Snippets"), _block(r"Kundenstimmen"))

_SECTION_LABELS = (
    r"Review Snippets|Meta Description|Excerpt|Tags|Key Takeaways|SEO Title|Slug|Outline|"
    r"Headline \(H1\)|Internal Links|(?:Focus |Fokus-)?Keyphrase"
)
_BODY_END = rf"(?=\n[ \t]*\*\*(?:{_SECTION_LABELS}):?\*\*|\Z)"

BODY_PATTERNS = (
    re.compile(rf"\*\*Blog Article:?\*\*:?[ \t]*\n*([\s\S]*?){_BODY_END}", re.IGNORECASE),
    re.compile(rf"\*\*Full Article:?\*\*:?[ \t]*\n*([\s\S]*?){_BODY_END}", re.IGNORECASE),
    re.compile(
        rf"\*\*(?:Blog Post|Blog Content|Article|Content):?\*\*:?[ \t]*\n*([\s\S]*?){_BODY_END}",
        re.IGNORECASE,
    ),
    re.compile(
        rf"(?:^|\n)(?:Blog Article|Full Article|Blog Post|Blog Content|Article|Content):[ \t]*\n([\s\S]*?){_BODY_END}",
        re.IGNORECASE,
    ),
    # Greedy: everything after the label
    re.compile(r"\*\*(?:Blog Article|Full Article):?\*\*:?\s*([\s\S]*)", re.IGNORECASE),
)


def _clean_value(value: str) -> str:
    value = value.replace("**", "").strip()
    return value.strip("\"'“”„").strip()


def _first_match(
    text: str, patterns: Iterable[re.Pattern[str]], min_length: int, multiline: bool = False
) -> str | None:
    """First captured value longer than min_length, trying patterns in order."""
    for pattern in patterns:
        for match in pattern.finditer(text):
            value = match.group(1).strip() if multiline else _clean_value(match.group(1))
            if len(value) > min_length:
                return value
    return None


def _split_tags(value: str) -> list[str]:
    tags: list[str] = []
    for part in re.split(r"[,;\n]", value):
        tag = part.strip().strip("\"'[]").lstrip("#-* ").strip()
        if tag and tag.lower() not in (t.lower() for t in tags):
            tags.append(tag)
    return tags[:MAX_TAGS]


def extract_marker_fields(raw: str, config: ParserConfig | None = None) -> MarkerFields:
    """Extract metadata fields via ordered regex lists."""
    config = config or ParserConfig()
    min_length = config.min_field_length

    tags_value = _first_match(raw, TAGS_PATTERNS, min_length)
    return MarkerFields(
        title=_first_match(raw, TITLE_PATTERNS, min_length),
        seo_title=_first_match(raw, SEO_TITLE_PATTERNS, min_length),
        slug=_first_match(raw, SLUG_PATTERNS, min_length),
        meta_description=_first_match(raw, META_DESCRIPTION_PATTERNS, min_length),
        excerpt=_first_match(raw, EXCERPT_PATTERNS, min_length),
        tags=_split_tags(tags_value) if tags_value else [],
        keyphrase=_first_match(raw, KEYPHRASE_PATTERNS, min_length),
        outline=_first_match(raw, OUTLINE_PATTERNS, min_length, multiline=True),
        key_takeaways=_first_match(raw, KEY_TAKEAWAYS_PATTERNS, min_length, multiline=True),
        review_snippets=_first_match(raw, REVIEW_SNIPPETS_PATTERNS, min_length, multiline=True),
    )


# -----------------------------------------------------------------------------
# Assembly
# -----------------------------------------------------------------------------


def _truncate(value: str, limit: int) -> str:
    value = value.strip()
    if len(value) <= limit:
        return value
    return value[:limit].rstrip()


def _assemble(
    fields: MarkerFields,
    body: str,
    strategy: ParseStrategy,
    confidence: FormatConfidence,
) -> ParsedDocument:
    """Combine fields and body, filling defaults and applying limits."""
    title = _truncate(fields.title or DEFAULT_TITLE, TITLE_MAX_LENGTH)
    meta_description = _truncate(
        fields.meta_description or DEFAULT_META_DESCRIPTION, META_DESCRIPTION_MAX_LENGTH
    )
    seo_title = _truncate(fields.seo_title or title + SEO_TITLE_SUFFIX, SEO_TITLE_MAX_LENGTH)
    excerpt = _truncate(fields.excerpt or meta_description, EXCERPT_MAX_LENGTH)
    tags = list(fields.tags[:MAX_TAGS]) or list(DEFAULT_TAGS)
    keyphrase = _truncate(fields.keyphrase or tags[0], KEYPHRASE_MAX_LENGTH)
    slug = clean_slug(fields.slug) or clean_slug(title) or DEFAULT_SLUG

    return ParsedDocument(
        title=title,
        seo_title=seo_title,
        slug=slug[:SLUG_MAX_LENGTH].rstrip("-") or DEFAULT_SLUG,
        meta_description=meta_description,
        excerpt=excerpt,
        tags=tags,
        keyphrase=keyphrase,
        content_html=body.strip(),
        format_confidence=confidence,
        strategy=strategy,
    )


def _append_marker_sections(body: str, fields: MarkerFields, language: str) -> str:
    takeaways_heading, reviews_heading = APPENDED_SECTION_HEADINGS.get(
        language, APPENDED_SECTION_HEADINGS["de"]
    )
    parts = [body.strip()]
    if fields.key_takeaways and fields.key_takeaways not in body:
        parts.append(f"## {takeaways_heading}\n\n{fields.key_takeaways.strip()}")
    if fields.review_snippets and fields.review_snippets not in body:
        parts.append(f"## {reviews_heading}\n\n{fields.review_snippets.strip()}")
    return "\n\n".join(parts)


# -----------------------------------------------------------------------------
# Strategies
# -----------------------------------------------------------------------------


def try_marker_extraction(
    raw: str, fields: MarkerFields, config: ParserConfig
) -> ParsedDocument | None:
    """Body from a labeled article block."""
    body = _first_match(raw, BODY_PATTERNS, config.min_body_length, multiline=True)
    if body is None:
        return None

    confidence = (
        FormatConfidence.HIGH
        if fields.title and fields.has_seo_field
        else FormatConfidence.LOW
    )
    body = _append_marker_sections(body, fields, config.language)
    return _assemble(fields, body, ParseStrategy.MARKER, confidence)


def try_section_split(
    raw: str, fields: MarkerFields, config: ParserConfig
) -> ParsedDocument | None:
    """Longest segment between bold labels that reads like the target language."""
    segments = re.split(r"\*\*[^*\n]{1,80}\*\*:?", raw)
    if len(segments) < 2:
        return None

    locale_words = LOCALE_WORDS.get(config.language, LOCALE_WORDS["de"])
    candidates = [
        segment.strip()
        for segment in segments
        if len(segment.strip()) > config.min_body_length and locale_words.search(segment)
    ]
    if not candidates:
        return None

    body = max(candidates, key=len)
    return _assemble(fields, body, ParseStrategy.SECTION_SPLIT, FormatConfidence.LOW)


def split_sentences(text: str, min_length: int) -> list[str]:
    """Sentences longer than min_length, each ending with punctuation."""
    plain = re.sub(r"[*#_`>]+", " ", text)
    plain = re.sub(r"\s+", " ", plain).strip()
    sentences: list[str] = []
    for sentence in re.split(r"(?<=[.!?])\s+", plain):
        sentence = sentence.strip()
        if len(sentence) <= min_length:
            continue
        if sentence[-1] not in ".!?":
            sentence += "."
        sentences.append(sentence)
    return sentences


def try_synthesis(raw: str, fields: MarkerFields, config: ParserConfig) -> ParsedDocument:
    """Always succeeds: redistribute sentences under fixed headings."""
    sentences = split_sentences(raw, config.min_sentence_length)

    padding = iter(PADDING_SENTENCES)
    while sum(len(s) + 1 for s in sentences) < config.min_content_length:
        next_sentence = next(padding, None)
        if next_sentence is None:
            break
        sentences.append(next_sentence)

    per_heading = max(1, math.ceil(len(sentences) / len(SYNTHESIS_HEADINGS)))
    sections: list[str] = []
    for index, heading in enumerate(SYNTHESIS_HEADINGS):
        chunk = sentences[index * per_heading : (index + 1) * per_heading]
        if chunk:
            sections.append(f"## {heading}\n\n{' '.join(chunk)}")

    return _assemble(
        fields, "\n\n".join(sections), ParseStrategy.SYNTHESIS, FormatConfidence.LOW
    )


def parse_response(
    raw: str,
    existing_slugs: Iterable[str] = (),
    config: ParserConfig | None = None,
) -> ParsedDocument:
    """Parse generated text into a ParsedDocument. Never raises.

    Args:
        raw: Generated text in any format.
        existing_slugs: Slugs already taken.
        config: Thresholds and target language.

    Returns:
        ParsedDocument with a unique slug and non-empty title and body.
    """
    config = config or ParserConfig()
    cleaned = strip_unwanted_sections(raw or "")
    fields = extract_marker_fields(cleaned, config)

    document = try_marker_extraction(cleaned, fields, config) or try_section_split(
        cleaned, fields, config
    )
    if document is None:
        document = try_synthesis(cleaned, fields, config)

    document.slug = generate_unique_slug(document.slug, existing_slugs)

    autoblog_logger.parse_strategy(
        document.strategy.value, document.format_confidence.value, len(document.content_html)
    )
    logger.debug(
        "Marker fields recovered",
        extra={
            "has_title": fields.title is not None,
            "has_slug": fields.slug is not None,
            "has_meta_description": fields.meta_description is not None,
            "tag_count": len(fields.tags),
        },
    )
    return document
