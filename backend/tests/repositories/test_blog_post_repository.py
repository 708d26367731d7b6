"""Tests for BlogPostRepository and KnowledgeBaseRepository (SQLite in-memory)."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.blog_post import PublicationState
from app.models.knowledge_base import KnowledgeBaseArticle
from app.repositories.blog_post import BlogPostRepository
from app.repositories.knowledge_base import KnowledgeBaseRepository


async def _create(repo: BlogPostRepository, slug: str, title: str = "Titel") -> None:
    await repo.create(
        title=title,
        slug=slug,
        content_html="<p>Inhalt</p>",
        status=PublicationState.DRAFT.value,
    )


class TestBlogPostRepository:
    async def test_create_sets_defaults(self, db_session: AsyncSession) -> None:
        repo = BlogPostRepository(db_session)

        post = await repo.create(
            title="Newborn Shooting in Wien",
            slug="newborn-shooting-wien",
            content_html="<p>Text</p>",
            status=PublicationState.PUBLISHED.value,
            tags=["newborn", "wien"],
            image_url="https://cdn.test/1.jpg",
            published_at=datetime(2026, 5, 1, tzinfo=UTC),
            format_confidence="high",
            generation_path="assistant",
        )

        assert post.id
        assert post.language == "de"
        assert post.tags == ["newborn", "wien"]
        assert post.status == "PUBLISHED"
        assert post.created_at is not None

    async def test_list_slugs_and_exists(self, db_session: AsyncSession) -> None:
        repo = BlogPostRepository(db_session)
        await _create(repo, "familienfotos-wien")
        await _create(repo, "babybauch-shooting")

        assert sorted(await repo.list_slugs()) == ["babybauch-shooting", "familienfotos-wien"]
        assert await repo.slug_exists("familienfotos-wien") is True
        assert await repo.slug_exists("unbekannt") is False

    async def test_duplicate_slug_raises_integrity_error(self, db_session: AsyncSession) -> None:
        repo = BlogPostRepository(db_session)
        await _create(repo, "doppelt")

        with pytest.raises(IntegrityError):
            await _create(repo, "doppelt")

    async def test_list_titles_newest_first(self, db_session: AsyncSession) -> None:
        repo = BlogPostRepository(db_session)
        now = datetime.now(UTC)
        for offset, title in enumerate(["Alt", "Mittel", "Neu"]):
            post = await repo.create(
                title=title,
                slug=title.lower(),
                content_html="<p>x</p>",
                status="DRAFT",
            )
            post.created_at = now + timedelta(minutes=offset)
        await db_session.flush()

        assert await repo.list_titles(limit=2) == ["Neu", "Mittel"]


class TestKnowledgeBaseRepository:
    async def test_list_articles_respects_limit(self, db_session: AsyncSession) -> None:
        now = datetime.now(UTC)
        for index in range(3):
            db_session.add(
                KnowledgeBaseArticle(
                    title=f"Artikel {index}",
                    summary="Kurz",
                    category="newborn",
                    tags=["baby"],
                    created_at=now + timedelta(minutes=index),
                )
            )
        await db_session.flush()

        articles = await KnowledgeBaseRepository(db_session).list_articles(limit=2)

        assert [a.title for a in articles] == ["Artikel 2", "Artikel 1"]
        assert articles[0].tags == ["baby"]

    async def test_empty_table(self, db_session: AsyncSession) -> None:
        assert await KnowledgeBaseRepository(db_session).list_articles() == []
