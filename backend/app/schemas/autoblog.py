"""Pydantic schemas for AutoBlog generation.

Defines:
- AutoBlogRequest: caller guidance and publication options for one run
- BlogPostResponse: the created post
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Publication modes accepted by the pipeline
PUBLISH_OPTIONS = ("draft", "publish", "schedule")

Language = Literal["de", "en"]


class AutoBlogRequest(BaseModel):
    """Caller-supplied guidance for one generation run."""

    user_prompt: str = Field(
        default="",
        max_length=5000,
        description="Free-text guidance for the article",
    )
    content_guidance: str | None = Field(
        default=None,
        max_length=5000,
        description="Additional guidance (tone, focus, audience)",
    )
    language: Language = Field(default="de", description="Content language")
    site_url: str | None = Field(
        default=None,
        max_length=2048,
        description="Website to profile. Defaults to the studio site.",
    )
    publish_option: str = Field(
        default="draft",
        description="One of draft, publish, schedule",
    )
    scheduled_for: datetime | None = Field(
        default=None,
        description="Publication time, required when publish_option is schedule",
    )
    custom_slug: str | None = Field(
        default=None,
        max_length=255,
        description="Explicit URL slug instead of the generated one",
    )

    @field_validator("publish_option")
    @classmethod
    def normalize_publish_option(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("custom_slug", "site_url", "content_guidance")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    @property
    def guidance(self) -> str:
        """User prompt and content guidance joined into one text."""
        parts = [p.strip() for p in (self.user_prompt, self.content_guidance) if p and p.strip()]
        return "\n\n".join(parts)


class BlogPostResponse(BaseModel):
    """A created blog post."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    slug: str
    status: str
    excerpt: str | None = None
    seo_title: str | None = None
    meta_description: str | None = None
    keyphrase: str | None = None
    tags: list[str] = Field(default_factory=list)
    image_url: str | None = None
    content_html: str
    language: str
    format_confidence: str | None = None
    published_at: datetime | None = None
    scheduled_for: datetime | None = None
    created_at: datetime
    updated_at: datetime


class AutoBlogResponse(BaseModel):
    """Response for a successful generation run."""

    success: bool = True
    post: BlogPostResponse
