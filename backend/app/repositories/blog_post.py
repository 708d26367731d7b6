"""BlogPostRepository for generated blog posts.

Provides the slug registry (all taken slugs), recent titles for the
duplicate-topic hint, and creation of the final post.

ERROR LOGGING REQUIREMENTS:
- Log method entry/exit at DEBUG level with parameters (sanitized)
- Log all exceptions with context
- Include entity IDs and slugs in all logs
- Add timing logs for operations >1 second
"""

import time
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import db_logger, get_logger
from app.models.blog_post import BlogPost

logger = get_logger(__name__)

SLOW_OPERATION_THRESHOLD_MS = 1000  # 1 second


class BlogPostRepository:
    """Repository for BlogPost persistence."""

    TABLE_NAME = "blog_posts"

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session."""
        self.session = session

    def _check_slow(self, query: str, start_time: float) -> float:
        duration_ms = (time.monotonic() - start_time) * 1000
        if duration_ms > SLOW_OPERATION_THRESHOLD_MS:
            db_logger.slow_query(query=query, duration_ms=duration_ms, table=self.TABLE_NAME)
        return duration_ms

    async def list_slugs(self) -> list[str]:
        """Return every slug currently in use."""
        start_time = time.monotonic()
        try:
            result = await self.session.execute(select(BlogPost.slug))
            slugs = list(result.scalars().all())
        except SQLAlchemyError as e:
            db_logger.transaction_failure(e, table=self.TABLE_NAME, context="Listing slugs")
            raise

        duration_ms = self._check_slow("SELECT slug FROM blog_posts", start_time)
        logger.debug(
            "Slugs listed",
            extra={"count": len(slugs), "duration_ms": round(duration_ms, 2)},
        )
        return slugs

    async def slug_exists(self, slug: str) -> bool:
        """Check whether a slug is taken."""
        result = await self.session.execute(
            select(BlogPost.id).where(BlogPost.slug == slug).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def list_titles(self, limit: int = 10) -> list[str]:
        """Return the most recent post titles, newest first."""
        start_time = time.monotonic()
        try:
            result = await self.session.execute(
                select(BlogPost.title).order_by(BlogPost.created_at.desc()).limit(limit)
            )
            titles = list(result.scalars().all())
        except SQLAlchemyError as e:
            db_logger.transaction_failure(e, table=self.TABLE_NAME, context="Listing titles")
            raise

        self._check_slow("SELECT title FROM blog_posts", start_time)
        return titles

    async def create(
        self,
        title: str,
        slug: str,
        content_html: str,
        status: str,
        excerpt: str | None = None,
        seo_title: str | None = None,
        meta_description: str | None = None,
        keyphrase: str | None = None,
        tags: list[str] | None = None,
        image_url: str | None = None,
        published_at: datetime | None = None,
        scheduled_for: datetime | None = None,
        language: str = "de",
        format_confidence: str | None = None,
        generation_path: str | None = None,
    ) -> BlogPost:
        """Insert a new blog post.

        Raises:
            IntegrityError: If the slug is already taken.
            SQLAlchemyError: On other database errors.
        """
        start_time = time.monotonic()
        logger.debug("Creating blog post", extra={"slug": slug, "status": status})

        try:
            post = BlogPost(
                title=title,
                slug=slug,
                content_html=content_html,
                status=status,
                excerpt=excerpt,
                seo_title=seo_title,
                meta_description=meta_description,
                keyphrase=keyphrase,
                tags=tags or [],
                image_url=image_url,
                published_at=published_at,
                scheduled_for=scheduled_for,
                language=language,
                format_confidence=format_confidence,
                generation_path=generation_path,
            )
            self.session.add(post)
            await self.session.flush()
            await self.session.refresh(post)

        except IntegrityError as e:
            logger.error(
                "Failed to create blog post - integrity error",
                extra={
                    "slug": slug,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            raise

        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Creating blog post slug={slug}"
            )
            raise

        duration_ms = self._check_slow("INSERT INTO blog_posts", start_time)
        logger.info(
            "Blog post created",
            extra={
                "post_id": post.id,
                "slug": slug,
                "status": status,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return post
