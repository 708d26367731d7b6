"""Models layer - SQLAlchemy ORM models.

Models define the database schema and relationships.
All models inherit from the Base class defined in core.database.
"""

from app.core.database import Base
from app.models.blog_post import BlogPost, PublicationState
from app.models.knowledge_base import KnowledgeBaseArticle

__all__ = [
    "Base",
    "BlogPost",
    "KnowledgeBaseArticle",
    "PublicationState",
]
