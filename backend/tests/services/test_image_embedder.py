"""Tests for image embedding.

Tests cover:
- Section placement skips the introduction and fills later sections
- Paragraph and prepend fallbacks
- No image is ever embedded twice (registry seeded from the HTML)
- The CTA block never receives images
- Alt texts per session type
"""

from app.services.content_formatter import CtaLinks, build_cta_block
from app.services.image_analysis import FALLBACK_ANALYSIS, ImageAnalysis
from app.services.image_embedder import (
    CTA_MARKER,
    DEFAULT_ALT_TEXT,
    UsedImageRegistry,
    alt_text,
    embed_images,
    figure_markup,
)
from app.services.image_ingestion import UploadedImage

CTA = build_cta_block(CtaLinks())

SECTIONED_HTML = (
    "<h2>Einleitung</h2>\n<p>Intro.</p>\n"
    "<h2>Teil 1</h2>\n<p>A</p>\n<p>B</p>\n"
    "<h2>Teil 2</h2>\n<ul><li>x</li></ul>\n"
    "<h2>Teil 3</h2>\n<p>C</p>\n" + CTA
)

NEWBORN = ImageAnalysis(
    session_type="newborn",
    subjects="Neugeborenes",
    setting="Studio",
    emotions="ruhig",
    clothing="Wickeltuch",
    specifics="Körbchen",
)


def _images(count: int) -> list[UploadedImage]:
    return [
        UploadedImage(
            data=b"x",
            filename=f"autoblog-1-abcdef12-{n}.jpg",
            content_type="image/jpeg",
            public_url=f"https://cdn.test/blog-images/{n}.jpg",
            size=1,
        )
        for n in range(1, count + 1)
    ]


def _src(n: int) -> str:
    return f'src="https://cdn.test/blog-images/{n}.jpg"'


class TestSectionPlacement:
    def test_three_images_spread_over_later_sections(self) -> None:
        html = embed_images(SECTIONED_HTML, _images(3), NEWBORN)

        for n in (1, 2, 3):
            assert html.count(_src(n)) == 1
        assert html.index("<h2>Teil 1</h2>") < html.index(_src(1)) < html.index("<p>B</p>")
        assert html.index("</ul>") < html.index(_src(2)) < html.index("<h2>Teil 3</h2>")
        assert html.index("<p>C</p>") < html.index(_src(3))

    def test_introduction_receives_no_image(self) -> None:
        html = embed_images(SECTIONED_HTML, _images(3), NEWBORN)

        intro = html[: html.index("<h2>Teil 1</h2>")]
        assert "<figure" not in intro

    def test_cta_block_untouched(self) -> None:
        html = embed_images(SECTIONED_HTML, _images(3), NEWBORN)

        assert html.endswith(CTA)
        assert "<figure" not in html[html.index(CTA_MARKER) :]

    def test_more_images_than_sections(self) -> None:
        html = embed_images(SECTIONED_HTML, _images(5), NEWBORN)

        assert html.count("<figure") == 5
        section_one = html[html.index("<h2>Teil 1</h2>") : html.index("<h2>Teil 2</h2>")]
        assert section_one.count("<figure") == 2


class TestFallbackPlacement:
    def test_paragraphs_when_too_few_sections(self) -> None:
        html = "<h2>Nur eine</h2><p>1</p><p>2</p><p>3</p><p>4</p>"

        result = embed_images(html, _images(2), NEWBORN)

        assert result.index("<p>1</p>") < result.index(_src(1)) < result.index("<p>2</p>")
        assert result.index("<p>3</p>") < result.index(_src(2)) < result.index("<p>4</p>")

    def test_more_images_than_paragraphs(self) -> None:
        result = embed_images("<p>Einziger Absatz</p>", _images(3), NEWBORN)

        assert result.count("<figure") == 3
        assert result.startswith("<p>Einziger Absatz</p>")

    def test_prepend_without_paragraphs(self) -> None:
        result = embed_images("<h3>Nur Titel</h3>", _images(1), NEWBORN)

        assert result.startswith('<figure class="blog-image">')
        assert result.endswith("<h3>Nur Titel</h3>")


class TestRegistry:
    def test_image_already_in_html_not_repeated(self) -> None:
        html = '<p>Text</p><img src="https://cdn.test/blog-images/1.jpg"><p>Mehr</p>'

        result = embed_images(html, _images(3), NEWBORN)

        assert result.count(_src(1)) == 1
        assert result.count(_src(2)) == 1
        assert result.count(_src(3)) == 1

    def test_duplicate_uploads_embedded_once(self) -> None:
        images = _images(1) * 3

        result = embed_images("<p>Absatz</p>", images, NEWBORN)

        assert result.count(_src(1)) == 1

    def test_shared_registry_blocks_reuse(self) -> None:
        registry = UsedImageRegistry()
        first = embed_images("<p>Eins</p>", _images(1), NEWBORN, registry)
        second = embed_images("<p>Zwei</p>", _images(1), NEWBORN, registry)

        assert first.count("<figure") == 1
        assert second == "<p>Zwei</p>"
        assert "https://cdn.test/blog-images/1.jpg" in registry
        assert len(registry) == 1

    def test_claim(self) -> None:
        registry = UsedImageRegistry.from_html("<img alt='a' src='/x.jpg'>")

        assert "/x.jpg" in registry
        assert registry.claim("/x.jpg") is False
        assert registry.claim("/y.jpg") is True


class TestMarkup:
    def test_alt_text_per_session_type(self) -> None:
        assert alt_text("couple", 2) == "Paarshooting in Wien bei New Age Fotografie - Bild 2"
        assert alt_text("portrait", 1) == f"{DEFAULT_ALT_TEXT} - Bild 1"

    def test_alt_texts_numbered_by_upload_order(self) -> None:
        html = embed_images(SECTIONED_HTML, _images(3), FALLBACK_ANALYSIS)

        for n in (1, 2, 3):
            assert f"Familienfotografie Session bei New Age Fotografie Wien - Bild {n}" in html

    def test_figure_markup_escapes_attributes(self) -> None:
        markup = figure_markup('https://cdn.test/a.jpg?x=1&y="2"', 'Alt "zitiert"')

        assert 'src="https://cdn.test/a.jpg?x=1&amp;y=&quot;2&quot;"' in markup
        assert 'alt="Alt &quot;zitiert&quot;"' in markup
        assert 'loading="lazy"' in markup
