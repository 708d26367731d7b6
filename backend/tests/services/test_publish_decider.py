"""Tests for the publication decision."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from app.models.blog_post import PublicationState
from app.schemas.autoblog import AutoBlogRequest
from app.services.errors import AutoBlogValidationError
from app.services.publish_decider import decide, validate_custom_slug, validate_request

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


class TestDecide:
    def test_draft(self) -> None:
        decision = decide("draft", now=NOW)

        assert decision.state == PublicationState.DRAFT
        assert decision.published_at is None
        assert decision.scheduled_for is None

    def test_publish_sets_published_at(self) -> None:
        decision = decide("Publish", now=NOW)

        assert decision.state == PublicationState.PUBLISHED
        assert decision.published_at == NOW
        assert decision.scheduled_for is None

    def test_schedule_in_future(self) -> None:
        when = NOW + timedelta(days=2)

        decision = decide("schedule", when, now=NOW)

        assert decision.state == PublicationState.SCHEDULED
        assert decision.scheduled_for == when
        assert decision.published_at is None

    def test_schedule_normalized_to_utc(self) -> None:
        vienna = timezone(timedelta(hours=2))
        when = datetime(2026, 10, 21, 9, 0, tzinfo=vienna)

        decision = decide("schedule", when, now=NOW)

        assert decision.scheduled_for == datetime(2026, 10, 21, 7, 0, tzinfo=UTC)

    def test_naive_schedule_treated_as_utc(self) -> None:
        decision = decide("schedule", datetime(2026, 10, 20, 8, 0), now=NOW)

        assert decision.scheduled_for == datetime(2026, 10, 20, 8, 0, tzinfo=UTC)

    def test_schedule_requires_time(self) -> None:
        with pytest.raises(AutoBlogValidationError) as exc_info:
            decide("schedule", None, now=NOW)

        assert exc_info.value.field == "scheduled_for"

    @pytest.mark.parametrize("offset", [timedelta(0), timedelta(hours=-1)])
    def test_schedule_must_be_future(self, offset: timedelta) -> None:
        with pytest.raises(AutoBlogValidationError, match="future"):
            decide("schedule", NOW + offset, now=NOW)

    def test_past_schedule_allowed_when_not_required(self) -> None:
        decision = decide("schedule", NOW - timedelta(minutes=1), now=NOW, require_future=False)

        assert decision.state == PublicationState.SCHEDULED

    def test_unknown_mode(self) -> None:
        with pytest.raises(AutoBlogValidationError) as exc_info:
            decide("later", now=NOW)

        assert exc_info.value.field == "publish_option"
        assert "draft, publish, schedule" in exc_info.value.message


class TestValidateRequest:
    def test_image_count_checked_first(self) -> None:
        request = AutoBlogRequest(publish_option="later")

        with pytest.raises(AutoBlogValidationError) as exc_info:
            validate_request(request, image_count=5, max_images=3, now=NOW)

        assert exc_info.value.field == "images"

    def test_valid_request(self) -> None:
        request = AutoBlogRequest(publish_option="publish")

        decision = validate_request(request, image_count=2, max_images=3, now=NOW)

        assert decision.state == PublicationState.PUBLISHED

    def test_unusable_custom_slug_rejected(self) -> None:
        request = AutoBlogRequest(publish_option="draft", custom_slug="§§§")

        with pytest.raises(AutoBlogValidationError) as exc_info:
            validate_request(request, image_count=1, max_images=3, now=NOW)

        assert exc_info.value.field == "custom_slug"


class TestValidateCustomSlug:
    def test_none_passes(self) -> None:
        assert validate_custom_slug(None) is None

    def test_cleaned(self) -> None:
        assert validate_custom_slug("  Über Uns Shooting ") == "ueber-uns-shooting"

    @pytest.mark.parametrize("value", ["!!!", "---", "🙂"])
    def test_nothing_usable(self, value: str) -> None:
        with pytest.raises(AutoBlogValidationError, match="no usable characters"):
            validate_custom_slug(value)
