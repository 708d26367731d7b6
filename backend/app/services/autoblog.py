"""AutoBlogService: photos and guidance in, persisted blog post out.

Runs the pipeline for one request:

1. validate image count, custom slug and publication mode (no external call yet)
2. ingest images
3. aggregate context
4. generate text
5. parse against the existing slugs
6. format HTML
7. embed images (the featured image too unless disabled in settings)
8. decide publication
9. resolve the slug (custom slugs are checked again before insert)
10. persist

Only AutoBlogValidationError, GenerationUnavailableError and
PersistenceError leave this service. Degraded context sources and parse
fallbacks show up in the logs only.

ERROR LOGGING REQUIREMENTS:
- Log stage start/complete with durations
- Log validation failures with field names and rejected values
- Include slug and post id in persistence logs
"""

import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings, get_settings
from app.core.logging import autoblog_logger, get_logger
from app.integrations.openai_assistant import OpenAIClient
from app.integrations.s3 import S3Client
from app.integrations.serpapi import SerpAPIClient
from app.integrations.website import WebsiteClient
from app.models.blog_post import BlogPost
from app.repositories.blog_post import BlogPostRepository
from app.repositories.knowledge_base import KnowledgeBaseRepository
from app.schemas.autoblog import AutoBlogRequest
from app.services.content_formatter import CtaLinks, format_content
from app.services.context_aggregation import ContextAggregator
from app.services.errors import (
    AutoBlogError,
    AutoBlogValidationError,
    PersistenceError,
)
from app.services.generation_orchestrator import GenerationOrchestrator, GenerationRequest
from app.services.image_analysis import ImageAnalyzer
from app.services.image_embedder import UsedImageRegistry, embed_images
from app.services.image_ingestion import ImageIngestor, RawUpload, UploadedImage
from app.services.publish_decider import (
    PublicationDecision,
    decide,
    validate_custom_slug,
    validate_request,
)
from app.services.response_parser import ParsedDocument, ParserConfig, parse_response
from app.utils.slug import clean_slug, generate_unique_slug

logger = get_logger(__name__)


class AutoBlogService:
    """Runs the AutoBlog pipeline against one database session."""

    def __init__(
        self,
        session: AsyncSession,
        ingestor: ImageIngestor,
        aggregator: ContextAggregator,
        orchestrator: GenerationOrchestrator,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session = session
        self._repository = BlogPostRepository(session)
        self._ingestor = ingestor
        self._aggregator = aggregator
        self._orchestrator = orchestrator
        self._settings = settings or get_settings()
        self._clock = clock or (lambda: datetime.now(UTC))

    @classmethod
    def create(
        cls,
        session: AsyncSession,
        openai: OpenAIClient,
        storage: S3Client,
        serpapi: SerpAPIClient | None = None,
        website: WebsiteClient | None = None,
        settings: Settings | None = None,
    ) -> "AutoBlogService":
        """Wire the pipeline from integration clients."""
        settings = settings or get_settings()
        return cls(
            session=session,
            ingestor=ImageIngestor(storage),
            aggregator=ContextAggregator(
                image_analyzer=ImageAnalyzer(openai),
                website=website,
                serpapi=serpapi,
                blog_posts=BlogPostRepository(session),
                knowledge_base=KnowledgeBaseRepository(session),
                settings=settings,
            ),
            orchestrator=GenerationOrchestrator(
                openai,
                assistant_id=settings.autoblog_assistant_id,
                poll_interval=settings.autoblog_poll_interval,
                max_poll_attempts=settings.autoblog_max_poll_attempts,
                fallback_temperature=settings.autoblog_fallback_temperature,
            ),
            settings=settings,
        )

    async def _check_custom_slug(self, custom_slug: str | None) -> str | None:
        slug = validate_custom_slug(custom_slug)
        if slug is not None and await self._repository.slug_exists(slug):
            raise PersistenceError(f"Slug '{slug}' is already in use", conflict=True)
        return slug

    async def _resolve_slug(
        self, custom_slug: str | None, parsed_slug: str, existing: Sequence[str]
    ) -> str:
        if custom_slug is None:
            return generate_unique_slug(parsed_slug, existing)

        # Taken slugs were rejected upfront; another run may have claimed it since
        slug = clean_slug(custom_slug)
        if await self._repository.slug_exists(slug):
            raise PersistenceError(f"Slug '{slug}' is already in use", conflict=True)
        return slug

    async def generate(
        self, uploads: Sequence[RawUpload], request: AutoBlogRequest
    ) -> BlogPost:
        """Run the whole pipeline and persist the post.

        Args:
            uploads: Raw photos in upload order.
            request: Guidance and publication options.

        Returns:
            The persisted BlogPost.

        Raises:
            AutoBlogValidationError: Invalid request; nothing external was called.
            GenerationUnavailableError: No generation path produced text.
            PersistenceError: Image storage or database failure, or a taken custom slug.
        """
        start_time = time.monotonic()
        logger.info(
            "AutoBlog run started",
            extra={
                "image_count": len(uploads),
                "language": request.language,
                "publish_option": request.publish_option,
                "has_custom_slug": request.custom_slug is not None,
            },
        )

        try:
            # 1. validate
            validate_request(request, len(uploads), self._ingestor.max_images, self._clock())
            await self._check_custom_slug(request.custom_slug)

            # 2. ingest
            images = await self._ingestor.ingest(uploads)

            # 3. aggregate
            bundle = await self._aggregator.aggregate(images, request)

            # 4. generate
            result = await self._orchestrator.generate(
                GenerationRequest(
                    prompt=bundle.prompt,
                    image_urls=[image.public_url for image in images],
                )
            )

            # 5. parse
            existing_slugs = await self._repository.list_slugs()
            document = parse_response(
                result.text,
                existing_slugs,
                ParserConfig.from_settings(self._settings, request.language),
            )

            # 6. format
            html = format_content(document.content_html, CtaLinks.from_settings(self._settings))

            # 7. embed
            registry = UsedImageRegistry.from_html(html)
            if images and not self._settings.autoblog_embed_featured_image:
                # Featured image is shown by the post header only
                registry.claim(images[0].public_url)
            document.content_html = embed_images(html, images, bundle.image_analysis, registry)

            # 8. publication; the schedule time was already checked upfront
            decision = decide(
                request.publish_option,
                request.scheduled_for,
                self._clock(),
                require_future=False,
            )

            # 9. slug
            document.slug = await self._resolve_slug(
                request.custom_slug, document.slug, existing_slugs
            )

            # 10. persist
            post = await self._persist(document, decision, images, request, result.path)

        except SQLAlchemyError as e:
            autoblog_logger.run_failed(type(e).__name__, str(e))
            raise PersistenceError(f"Database error: {type(e).__name__}") from e
        except AutoBlogValidationError as e:
            logger.warning(
                "AutoBlog validation failed",
                extra={"field": e.field, "value": str(e.value)[:100], "error": e.message},
            )
            raise
        except AutoBlogError as e:
            autoblog_logger.run_failed(type(e).__name__, str(e))
            raise

        duration_ms = (time.monotonic() - start_time) * 1000
        logger.info(
            "AutoBlog run completed",
            extra={
                "post_id": post.id,
                "slug": post.slug,
                "status": post.status,
                "format_confidence": post.format_confidence,
                "generation_path": post.generation_path,
                "degraded_sources": bundle.degraded,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return post

    async def _persist(
        self,
        document: ParsedDocument,
        decision: PublicationDecision,
        images: Sequence[UploadedImage],
        request: AutoBlogRequest,
        generation_path: str,
    ) -> BlogPost:
        try:
            return await self._repository.create(
                title=document.title,
                slug=document.slug,
                content_html=document.content_html,
                status=decision.state.value,
                excerpt=document.excerpt,
                seo_title=document.seo_title,
                meta_description=document.meta_description,
                keyphrase=document.keyphrase,
                tags=document.tags,
                image_url=images[0].public_url if images else None,
                published_at=decision.published_at,
                scheduled_for=decision.scheduled_for,
                language=request.language,
                format_confidence=document.format_confidence.value,
                generation_path=generation_path,
            )
        except IntegrityError as e:
            await self._session.rollback()
            raise PersistenceError(
                f"Slug '{document.slug}' is already in use", conflict=True
            ) from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise PersistenceError(f"Failed to save blog post: {type(e).__name__}") from e
