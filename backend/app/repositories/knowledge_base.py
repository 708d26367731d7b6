"""KnowledgeBaseRepository for read access to knowledge-base articles."""

import time

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import db_logger, get_logger
from app.models.knowledge_base import KnowledgeBaseArticle

logger = get_logger(__name__)

SLOW_OPERATION_THRESHOLD_MS = 1000  # 1 second


class KnowledgeBaseRepository:
    """Repository for KnowledgeBaseArticle queries."""

    TABLE_NAME = "knowledge_base_articles"

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_articles(self, limit: int = 20) -> list[KnowledgeBaseArticle]:
        """Return up to ``limit`` articles, newest first."""
        start_time = time.monotonic()
        try:
            result = await self.session.execute(
                select(KnowledgeBaseArticle)
                .order_by(KnowledgeBaseArticle.created_at.desc())
                .limit(limit)
            )
            articles = list(result.scalars().all())
        except SQLAlchemyError as e:
            db_logger.transaction_failure(e, table=self.TABLE_NAME, context="Listing articles")
            raise

        duration_ms = (time.monotonic() - start_time) * 1000
        if duration_ms > SLOW_OPERATION_THRESHOLD_MS:
            db_logger.slow_query(
                query="SELECT FROM knowledge_base_articles",
                duration_ms=duration_ms,
                table=self.TABLE_NAME,
            )
        logger.debug(
            "Knowledge base articles listed",
            extra={"count": len(articles), "limit": limit, "duration_ms": round(duration_ms, 2)},
        )
        return articles
