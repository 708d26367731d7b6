"""KnowledgeBaseArticle model.

Curated studio knowledge (FAQ answers, session guides, pricing notes) fed
into blog generation as background context.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class KnowledgeBaseArticle(Base):
    """A knowledge-base entry.

    Attributes:
        id: UUID primary key
        title: Article title
        summary: One or two sentence summary used in prompts
        content: Full article text
        category: Grouping label (e.g. 'newborn', 'pricing')
        tags: List of tag strings
        created_at: Timestamp when the article was created
    """

    __tablename__ = "knowledge_base_articles"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)

    summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    content: Mapped[str | None] = mapped_column(Text, nullable=True)

    category: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="general",
        server_default=text("'general'"),
        index=True,
    )

    tags: Mapped[list[Any]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    def __repr__(self) -> str:
        return f"<KnowledgeBaseArticle(id={self.id!r}, title={self.title!r})>"
