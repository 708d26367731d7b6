"""Publication decision for generated posts.

Maps the caller's publish option to a PublicationState and the one
timestamp that goes with it:

- draft    -> DRAFT, no timestamp
- publish  -> PUBLISHED, published_at = now
- schedule -> SCHEDULED, scheduled_for = requested time (must be in the future)

Naive datetimes are treated as UTC.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from app.models.blog_post import PublicationState
from app.schemas.autoblog import PUBLISH_OPTIONS, AutoBlogRequest
from app.services.errors import AutoBlogValidationError
from app.services.image_ingestion import validate_image_count
from app.utils.slug import clean_slug


@dataclass(frozen=True)
class PublicationDecision:
    state: PublicationState
    published_at: datetime | None = None
    scheduled_for: datetime | None = None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def decide(
    mode: str,
    scheduled_for: datetime | None = None,
    now: datetime | None = None,
    require_future: bool = True,
) -> PublicationDecision:
    """Decide the publication state for a post.

    Args:
        mode: draft, publish or schedule (case-insensitive).
        scheduled_for: Requested publication time for schedule.
        now: Current time; defaults to the wall clock.
        require_future: Reject schedule times that are not after now.

    Raises:
        AutoBlogValidationError: Unknown mode, or a missing or past schedule time.
    """
    now = _as_utc(now or datetime.now(UTC))
    normalized = (mode or "").strip().lower()

    if normalized == "draft":
        return PublicationDecision(state=PublicationState.DRAFT)

    if normalized == "publish":
        return PublicationDecision(state=PublicationState.PUBLISHED, published_at=now)

    if normalized == "schedule":
        if scheduled_for is None:
            raise AutoBlogValidationError(
                "scheduled_for", None, "A publication time is required for scheduling"
            )
        when = _as_utc(scheduled_for)
        if require_future and when <= now:
            raise AutoBlogValidationError(
                "scheduled_for", scheduled_for.isoformat(), "Publication time must be in the future"
            )
        return PublicationDecision(state=PublicationState.SCHEDULED, scheduled_for=when)

    raise AutoBlogValidationError(
        "publish_option", mode, f"Must be one of: {', '.join(PUBLISH_OPTIONS)}"
    )


def validate_custom_slug(custom_slug: str | None) -> str | None:
    """Cleaned custom slug, or None when the caller did not ask for one."""
    if custom_slug is None:
        return None
    slug = clean_slug(custom_slug)
    if not slug:
        raise AutoBlogValidationError(
            "custom_slug", custom_slug, "Slug contains no usable characters"
        )
    return slug


def validate_request(
    request: AutoBlogRequest,
    image_count: int,
    max_images: int,
    now: datetime | None = None,
) -> PublicationDecision:
    """Reject invalid runs before any external call is made."""
    validate_image_count(image_count, max_images)
    validate_custom_slug(request.custom_slug)
    return decide(request.publish_option, request.scheduled_for, now)
