"""Repositories layer - Data access and persistence.

Repositories handle all database operations using SQLAlchemy.
They abstract the database implementation from the service layer.
"""

from app.repositories.blog_post import BlogPostRepository
from app.repositories.knowledge_base import KnowledgeBaseRepository

__all__ = ["BlogPostRepository", "KnowledgeBaseRepository"]
