"""Context aggregation for blog generation.

Collects six independent context sources concurrently and assembles the
generation prompt:

- business_facts: studio facts from settings plus the current season
- image_analysis: vision description of the uploaded photos
- site_profile: sections of the studio homepage
- seo_intel: SERP keywords for the main topic plus existing titles
- reviews: review snippets for the studio
- knowledge_base: curated articles grouped by category

Each source is best-effort. An exception or an empty result is logged as a
degraded source and replaced by that source's fixed fallback text, so every
key is always present in the bundle and aggregation never raises.
"""

import asyncio
import re
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from app.core.config import Settings, get_settings
from app.core.database import savepoint
from app.core.logging import autoblog_logger, get_logger
from app.integrations.serpapi import SerpAPIClient
from app.integrations.website import WebsiteClient
from app.repositories.blog_post import BlogPostRepository
from app.repositories.knowledge_base import KnowledgeBaseRepository
from app.schemas.autoblog import AutoBlogRequest
from app.services.errors import SourceDegradedError
from app.services.image_analysis import FALLBACK_ANALYSIS, ImageAnalysis, ImageAnalyzer
from app.services.image_ingestion import UploadedImage

logger = get_logger(__name__)

# Prompt order of the sources
SOURCE_ORDER = (
    "business_facts",
    "image_analysis",
    "site_profile",
    "seo_intel",
    "reviews",
    "knowledge_base",
)

SECTION_TITLES = {
    "business_facts": "BUSINESS FACTS",
    "image_analysis": "IMAGE ANALYSIS",
    "site_profile": "WEBSITE PROFILE",
    "seo_intel": "SEO INTELLIGENCE",
    "reviews": "CUSTOMER REVIEWS",
    "knowledge_base": "KNOWLEDGE BASE",
}

FALLBACK_TEXT = {
    "business_facts": (
        "FALLBACK: New Age Fotografie, professional photography studio in Vienna. "
        "Services: Family, newborn, maternity and business portraits."
    ),
    "image_analysis": "FALLBACK IMAGE ANALYSIS:\n" + FALLBACK_ANALYSIS.to_prompt_section(),
    "site_profile": (
        "FALLBACK: Professional photography studio in Vienna specializing in family portraits"
    ),
    "seo_intel": (
        "FALLBACK SEO CONTEXT:\n"
        "Target keywords: Familienfotograf Wien, Neugeborenenfotos Wien, Familienfotografie Vienna\n"
        "Local Vienna SEO optimization"
    ),
    "reviews": (
        "FALLBACK REVIEWS CONTEXT:\n"
        "- Google Reviews: positive feedback about professional quality\n"
        "- Client testimonials highlight relaxed atmosphere and excellent results"
    ),
    "knowledge_base": (
        "FALLBACK KNOWLEDGE BASE:\n"
        "Professional photography expertise and Vienna market insights"
    ),
}

SERVICES = "Family, newborn, maternity and business portraits"

TOPIC_PATTERNS = (
    re.compile(r"familien?(?:foto|shooting|portrait)", re.IGNORECASE),
    re.compile(r"newborn|neugeboren", re.IGNORECASE),
    re.compile(r"maternity|schwanger|babybauch", re.IGNORECASE),
    re.compile(r"business|portrait|headshot", re.IGNORECASE),
    re.compile(r"hochzeit|wedding", re.IGNORECASE),
    re.compile(r"baby|kinder", re.IGNORECASE),
)

DEFAULT_TOPIC = "fotografie"

MAX_KEYWORDS = 30
PROMPT_KEYWORDS = 15
VOICE_SAMPLE_LENGTH = 3000

GERMAN_STOPWORDS = frozenset(
    """
    aber alle allem allen aller alles als also am an ander andere anderem anderen
    anderer anderes auch auf aus bei bin bis bist da damit dann das dass dein
    deine dem den der des dessen die dies diese diesem diesen dieser dieses doch
    dort du durch ein eine einem einen einer eines einig einige er es etwas euch
    euer für gegen gewesen hab habe haben hat hatte hier hin hinter ich ihm ihn
    ihnen ihr ihre im in indem ins ist jede jedem jeden jeder jedes jetzt kann
    kein keine können mal man manche mehr mein meine mit muss nach nicht nichts
    noch nun nur ob oder ohne sehr sein seine sich sie sind so solche soll sondern
    sowie über um und uns unser unter viel vom von vor war waren was weil welche
    wenn werden wie wieder will wir wird wo zu zum zur zwar zwischen
    """.split()
)

_WORD = re.compile(r"[A-Za-zÄÖÜäöüß]+")


@dataclass
class ContextBundle:
    """Output of context aggregation."""

    sections: dict[str, str]
    prompt: str
    image_analysis: ImageAnalysis
    degraded: list[str] = field(default_factory=list)


def current_season(month: int) -> str:
    """German season name for a calendar month."""
    if 3 <= month <= 5:
        return "Frühling"
    if 6 <= month <= 8:
        return "Sommer"
    if 9 <= month <= 11:
        return "Herbst"
    return "Winter"


def extract_main_topic(guidance: str) -> str:
    """Pick the main topic of the guidance for keyword research."""
    for pattern in TOPIC_PATTERNS:
        match = pattern.search(guidance)
        if match:
            return match.group(0).lower()
    for word in guidance.split():
        if len(word) > 3:
            return word
    return DEFAULT_TOPIC


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Unique non-stopword words from SERP snippets, in order of appearance."""
    keywords: list[str] = []
    seen: set[str] = set()
    for word in _WORD.findall(text):
        lowered = word.lower()
        if len(word) < 3 or lowered in GERMAN_STOPWORDS or lowered in seen:
            continue
        seen.add(lowered)
        keywords.append(word)
        if len(keywords) >= limit:
            break
    return keywords


def _section_at(content: str, keywords: Sequence[str], length: int) -> str | None:
    lowered = content.lower()
    positions = [lowered.find(k) for k in keywords]
    found = [p for p in positions if p != -1]
    if not found:
        return None
    start = min(found)
    return content[start : start + length]


def extract_homepage_sections(text: str) -> dict[str, str]:
    """Cut named sections out of homepage text, each with a fallback."""
    hero = text[:500]
    hero_keywords = ("familienfotograf", "neugeborenenfotos", "wien", "fotografie")
    return {
        "hero": hero
        if any(k in hero.lower() for k in hero_keywords)
        else "Professional photography in Vienna",
        "services": _section_at(text, ("services", "leistungen", "angebot"), 800)
        or "Family portraits, newborn photography, maternity sessions, business headshots",
        "about": _section_at(text, ("about", "über", "story"), 600)
        or "Professional photography studio in Vienna specializing in family and newborn portraits",
        "pricing": _section_at(text, ("price", "preis", "€"), 400)
        or "Competitive pricing for photography sessions in Vienna",
        "testimonials": _section_at(text, ("testimonial", "review", "bewertung"), 600)
        or "Positive client feedback and testimonials",
        "contact": _section_at(text, ("contact", "kontakt", "hallo@"), 400)
        or "Contact information available on website",
    }


def build_business_facts(settings: Settings, now: datetime) -> str:
    return "\n".join(
        [
            f"Studio: {settings.studio_name}",
            f"Location: {settings.studio_address}",
            f"Phone: {settings.studio_phone}",
            f"Email: {settings.studio_email}",
            f"Hours: {settings.studio_hours}",
            f"Booking: {settings.autoblog_booking_path}",
            f"Services: {SERVICES}",
            f"Current season: {current_season(now.month)}",
        ]
    )


def build_site_profile(text: str) -> str:
    sections = extract_homepage_sections(text)
    return "\n".join(
        [
            f"HERO SECTION: {sections['hero']}",
            f"SERVICES OFFERED: {sections['services']}",
            f"ABOUT BUSINESS: {sections['about']}",
            f"PRICING STRUCTURE: {sections['pricing']}",
            f"CLIENT TESTIMONIALS: {sections['testimonials']}",
            f"CONTACT INFORMATION: {sections['contact']}",
            "",
            f"FULL WEBSITE VOICE SAMPLE: {text[:VOICE_SAMPLE_LENGTH]}",
        ]
    )


def format_reviews(snippets: Sequence[str], count: int, length: int) -> str:
    selected = [s for s in snippets if s.strip()][:count]
    if not selected:
        return ""
    lines = [f"Customer Reviews ({len(selected)} found):"]
    for index, snippet in enumerate(selected, start=1):
        text = snippet.strip()
        if len(text) > length:
            text = text[:length] + "..."
        lines.append(f'{index}. "{text}"')
    return "\n".join(lines)


def build_deliverable_format(request: AutoBlogRequest, settings: Settings, site_url: str) -> str:
    language_name = "German" if request.language == "de" else "English"
    links = ", ".join(
        [
            settings.autoblog_gallery_path,
            settings.autoblog_contact_path,
            settings.autoblog_booking_path,
        ]
    )
    return f"""=== REQUEST ===
LANGUAGE: {request.language}
SITE URL: {site_url}
INTERNAL LINKS: {links}

Write a complete {language_name} blog package (at least 1200 words) that matches the uploaded photos exactly.
Use clean headings without "H1:" or "H2:" prefixes.

=== DELIVERABLE FORMAT (exact order) ===
**Focus Keyphrase:** two to four words for the main search term
**SEO Title:** include the keyphrase
**Slug:** kebab-case
**Headline (H1):** conversational headline
**Meta Description:** 120-156 characters with a call to action
**Excerpt:** one or two sentences
**Tags:** comma-separated
**Outline:** 6-8 H2 headings
**Key Takeaways:** bullet list
**Blog Article:** the full article with H2/H3 structure and internal links
**Review Snippets:** 2-3 authentic quotes"""


def build_prompt(
    sections: dict[str, str],
    request: AutoBlogRequest,
    settings: Settings,
    site_url: str,
) -> str:
    """Concatenate the sections in fixed order, then guidance and format."""
    parts = [f"=== {SECTION_TITLES[name]} ===\n{sections[name]}" for name in SOURCE_ORDER]
    default_guidance = (
        "Create a German blog post about this photography session."
        if request.language == "de"
        else "Create an English blog post about this photography session."
    )
    parts.append(f"=== USER GUIDANCE ===\n{request.guidance or default_guidance}")
    parts.append(build_deliverable_format(request, settings, site_url))
    return "\n\n".join(parts)


SourceFetcher = Callable[[], Awaitable[str]]


class ContextAggregator:
    """Gathers all context sources for one run."""

    def __init__(
        self,
        image_analyzer: ImageAnalyzer,
        website: WebsiteClient | None = None,
        serpapi: SerpAPIClient | None = None,
        blog_posts: BlogPostRepository | None = None,
        knowledge_base: KnowledgeBaseRepository | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._image_analyzer = image_analyzer
        self._website = website
        self._serpapi = serpapi
        self._blog_posts = blog_posts
        self._knowledge_base = knowledge_base
        self._settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(UTC))
        # Both repositories share one AsyncSession, which allows one query at a time.
        # Each read runs in a savepoint so a failed query leaves the transaction usable
        self._db_lock = asyncio.Lock()

    async def aggregate(
        self, images: Sequence[UploadedImage], request: AutoBlogRequest
    ) -> ContextBundle:
        """Collect every source and build the prompt. Never raises."""
        start_time = time.monotonic()
        autoblog_logger.stage_start("aggregate", image_count=len(images))

        site_url = request.site_url or self._settings.autoblog_site_url
        analysis_holder: list[ImageAnalysis] = []

        async def image_analysis() -> str:
            analysis = await self._image_analyzer.analyze(images)
            analysis_holder.append(analysis)
            return analysis.to_prompt_section()

        fetchers: dict[str, SourceFetcher] = {
            "business_facts": self._business_facts,
            "image_analysis": image_analysis,
            "site_profile": lambda: self._site_profile(site_url),
            "seo_intel": lambda: self._seo_intel(request.guidance),
            "reviews": self._reviews,
            "knowledge_base": self._knowledge_base_context,
        }

        results = await asyncio.gather(
            *(self._run_source(name, fetchers[name]) for name in SOURCE_ORDER)
        )

        sections: dict[str, str] = {}
        degraded: list[str] = []
        for name, (text, ok) in zip(SOURCE_ORDER, results, strict=True):
            sections[name] = text
            if not ok:
                degraded.append(name)

        bundle = ContextBundle(
            sections=sections,
            prompt=build_prompt(sections, request, self._settings, site_url),
            image_analysis=analysis_holder[0] if analysis_holder else FALLBACK_ANALYSIS,
            degraded=degraded,
        )

        autoblog_logger.stage_complete(
            "aggregate",
            (time.monotonic() - start_time) * 1000,
            degraded_sources=degraded,
            prompt_length=len(bundle.prompt),
        )
        return bundle

    async def _run_source(self, name: str, fetch: SourceFetcher) -> tuple[str, bool]:
        """Run one source; return (text, succeeded) with fallback text on failure."""
        try:
            text = await fetch()
            if not text or not text.strip():
                raise SourceDegradedError(name, "Empty result")
            return text.strip(), True
        except SourceDegradedError as e:
            reason = e.reason
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
        autoblog_logger.source_degraded(name, reason)
        return FALLBACK_TEXT[name], False

    async def _business_facts(self) -> str:
        return build_business_facts(self._settings, self._clock())

    async def _site_profile(self, site_url: str) -> str:
        if self._website is None:
            raise SourceDegradedError("site_profile", "Website client not configured")
        text = await self._website.fetch_text(site_url)
        if not text:
            raise SourceDegradedError("site_profile", "Homepage has no text")
        return build_site_profile(text)

    async def _seo_intel(self, guidance: str) -> str:
        if self._serpapi is None or not self._serpapi.available:
            raise SourceDegradedError("seo_intel", "SerpAPI not configured")

        topic = extract_main_topic(guidance)
        results = await self._serpapi.search(f"{topic} wien fotografie")
        keywords = extract_keywords(" ".join(r.snippet for r in results if r.snippet))

        titles: list[str] = []
        if self._blog_posts is not None:
            async with self._db_lock, savepoint(
                self._blog_posts.session, table=self._blog_posts.TABLE_NAME
            ):
                titles = await self._blog_posts.list_titles(limit=10)

        if not keywords and not titles:
            return ""

        lines = [f"Main topic: {topic}"]
        if keywords:
            lines.append(f"SEO Keywords: {', '.join(keywords[:PROMPT_KEYWORDS])}")
        if titles:
            lines.append(f"Existing Blog Titles ({len(titles)}): Avoid similar topics")
            lines.append(f"Recent titles: {', '.join(titles[:3])}")
        return "\n".join(lines)

    async def _reviews(self) -> str:
        if self._serpapi is None or not self._serpapi.available:
            raise SourceDegradedError("reviews", "SerpAPI not configured")
        snippets = await self._serpapi.fetch_reviews(self._settings.studio_review_query)
        return format_reviews(
            snippets,
            self._settings.autoblog_review_snippet_count,
            self._settings.autoblog_review_snippet_length,
        )

    async def _knowledge_base_context(self) -> str:
        if self._knowledge_base is None:
            raise SourceDegradedError("knowledge_base", "Knowledge base not available")

        async with self._db_lock, savepoint(
            self._knowledge_base.session, table=self._knowledge_base.TABLE_NAME
        ):
            articles = await self._knowledge_base.list_articles(
                limit=self._settings.autoblog_knowledge_base_limit
            )
        if not articles:
            return ""

        by_category: dict[str, list[str]] = {}
        for article in articles:
            summary = article.summary or (article.content or "")[:200] or "No summary available"
            entry = f"- {article.title}: {summary}"
            if article.tags:
                entry += f"\n  Tags: {', '.join(str(t) for t in article.tags)}"
            by_category.setdefault(article.category or "General", []).append(entry)

        lines = [f"KNOWLEDGE BASE CONTEXT ({len(articles)} articles):"]
        for category, entries in by_category.items():
            lines.append(f"\n{category.upper()} ARTICLES:")
            lines.extend(entries)
        return "\n".join(lines)
