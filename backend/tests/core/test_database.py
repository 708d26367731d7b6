"""Tests for database session helpers.

Tests cover:
- asyncpg URL rewriting
- get_session commits on success and rolls back on SQLAlchemy errors
- savepoint() rolls back only its own block
- Table name extraction from error messages
"""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.core.database import (
    DatabaseManager,
    _extract_table_from_error,
    get_session,
    savepoint,
    to_async_url,
)
from app.models.blog_post import BlogPost


def _post(slug: str) -> BlogPost:
    return BlogPost(title="Titel", slug=slug, content_html="<p>Inhalt</p>")


async def _slugs(session_factory) -> list[str]:
    async with session_factory() as session:
        result = await session.execute(select(BlogPost.slug))
        return sorted(result.scalars().all())


class TestToAsyncUrl:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("postgres://u:p@host/db", "postgresql+asyncpg://u:p@host/db"),
            ("postgresql://u:p@host/db", "postgresql+asyncpg://u:p@host/db"),
            ("postgresql+asyncpg://u:p@host/db", "postgresql+asyncpg://u:p@host/db"),
        ],
    )
    def test_rewrite(self, url: str, expected: str) -> None:
        assert to_async_url(url) == expected


class TestDatabaseManager:
    def test_uninitialized_access_raises(self) -> None:
        manager = DatabaseManager()

        with pytest.raises(RuntimeError, match="not initialized"):
            _ = manager.session_factory

    async def test_check_connection(self, mock_db_manager: DatabaseManager) -> None:
        assert await mock_db_manager.check_connection() is True


class TestGetSession:
    async def test_commits_on_success(self, mock_db_manager, async_session_factory) -> None:
        sessions = get_session()
        session = await sessions.__anext__()
        session.add(_post("committed-post"))

        with pytest.raises(StopAsyncIteration):
            await sessions.__anext__()

        assert await _slugs(async_session_factory) == ["committed-post"]

    async def test_rolls_back_on_error(self, mock_db_manager, async_session_factory) -> None:
        sessions = get_session()
        session = await sessions.__anext__()
        session.add(_post("rolled-back"))
        await session.flush()

        with pytest.raises(IntegrityError):
            await sessions.athrow(IntegrityError("INSERT INTO blog_posts", {}, Exception("dup")))

        assert await _slugs(async_session_factory) == []


class TestSavepoint:
    async def test_failure_keeps_outer_transaction(
        self, db_session, async_session_factory
    ) -> None:
        db_session.add(_post("kept"))
        await db_session.flush()

        with pytest.raises(IntegrityError):
            async with savepoint(db_session, table="blog_posts"):
                db_session.add(_post("kept"))
                await db_session.flush()

        db_session.add(_post("added-later"))
        await db_session.commit()

        assert await _slugs(async_session_factory) == ["added-later", "kept"]

    async def test_success_keeps_changes(self, db_session) -> None:
        async with savepoint(db_session, table="blog_posts"):
            db_session.add(_post("inside"))
            await db_session.flush()

        result = await db_session.execute(select(BlogPost.slug))
        assert result.scalars().all() == ["inside"]


class TestExtractTable:
    @pytest.mark.parametrize(
        ("message", "table"),
        [
            ('relation "blog_posts" does not exist', "blog_posts"),
            ('INSERT INTO "blog_posts" (id) VALUES', "blog_posts"),
            ("UPDATE knowledge_base_articles SET", "knowledge_base_articles"),
            ("something else entirely", None),
        ],
    )
    def test_extract(self, message: str, table: str | None) -> None:
        assert _extract_table_from_error(Exception(message)) == table
