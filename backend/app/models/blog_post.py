"""BlogPost model for generated blog articles.

A BlogPost is the persisted output of one AutoBlog run:
- Content fields: title, slug (unique), content_html, excerpt
- SEO fields: seo_title, meta_description, keyphrase, tags (JSONB list)
- image_url: featured image (first uploaded photo)
- Publication: status (draft/published/scheduled) with exactly one of
  published_at / scheduled_for set for non-draft posts
- Provenance: language, format_confidence, generation_path
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class PublicationState(str, Enum):
    """Publication state of a blog post."""

    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    SCHEDULED = "SCHEDULED"


class BlogPost(Base):
    """Generated blog article.

    Attributes:
        id: UUID primary key
        title: Article headline (H1)
        slug: URL slug, unique across all posts
        content_html: Sanitized article HTML with embedded images
        excerpt: Short teaser for listings
        seo_title: <title> text
        meta_description: Meta description
        keyphrase: Focus keyphrase for on-page SEO
        tags: List of tag strings
        image_url: Featured image URL
        status: PublicationState value
        published_at: Set when published immediately
        scheduled_for: Set when scheduled
        language: Content language ('de' or 'en')
        format_confidence: 'high' when structural markers were found, else 'low'
        generation_path: 'assistant' or 'completion'
    """

    __tablename__ = "blog_posts"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    slug: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
    )

    content_html: Mapped[str] = mapped_column(Text, nullable=False)

    excerpt: Mapped[str | None] = mapped_column(Text, nullable=True)

    seo_title: Mapped[str | None] = mapped_column(String(255), nullable=True)

    meta_description: Mapped[str | None] = mapped_column(Text, nullable=True)

    keyphrase: Mapped[str | None] = mapped_column(String(60), nullable=True)

    tags: Mapped[list[Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
    )

    image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PublicationState.DRAFT.value,
        server_default=text("'DRAFT'"),
        index=True,
    )

    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    scheduled_for: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    language: Mapped[str] = mapped_column(
        String(5),
        nullable=False,
        default="de",
        server_default=text("'de'"),
    )

    format_confidence: Mapped[str | None] = mapped_column(String(10), nullable=True)

    generation_path: Mapped[str | None] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        return f"<BlogPost(id={self.id!r}, slug={self.slug!r}, status={self.status!r})>"
