"""AutoBlog API endpoints.

- POST /api/v1/autoblog/generate - Generate and store a blog post from photos

Error Logging Requirements:
- Log all incoming requests with method, path, request_id
- Log response status and timing for every request
- Return structured error responses: {"error": str, "code": str, "request_id": str}
- Log 4xx errors at WARNING, 5xx at ERROR
"""

import time
from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.core.logging import get_logger
from app.integrations.openai_assistant import get_openai
from app.integrations.s3 import get_s3
from app.integrations.serpapi import get_serpapi
from app.integrations.website import get_website
from app.schemas.autoblog import AutoBlogRequest, AutoBlogResponse, BlogPostResponse
from app.services.autoblog import AutoBlogService
from app.services.errors import (
    AutoBlogValidationError,
    GenerationUnavailableError,
    PersistenceError,
)
from app.services.image_ingestion import RawUpload

logger = get_logger(__name__)

router = APIRouter()


def _get_request_id(request: Request) -> str:
    """Get request_id from request state."""
    return getattr(request.state, "request_id", "unknown")


def _error(status_code: int, error: str, code: str, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "code": code, "request_id": request_id},
    )


async def get_autoblog_service(
    session: AsyncSession = Depends(get_session),
) -> AutoBlogService:
    """Build the pipeline from the global integration clients."""
    return AutoBlogService.create(
        session=session,
        openai=await get_openai(),
        storage=await get_s3(),
        serpapi=await get_serpapi(),
        website=await get_website(),
    )


@router.post(
    "/generate",
    response_model=AutoBlogResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate a blog post",
    description=(
        "Upload session photos with optional guidance. The photos are analyzed, "
        "combined with studio context, turned into an article and stored as a "
        "draft, published or scheduled post."
    ),
    responses={
        400: {
            "description": "Invalid request",
            "content": {
                "application/json": {
                    "example": {
                        "error": "Validation failed for 'images': At most 3 images are allowed",
                        "code": "VALIDATION_ERROR",
                        "request_id": "<request_id>",
                    }
                }
            },
        },
        409: {
            "description": "Slug already in use",
            "content": {
                "application/json": {
                    "example": {
                        "error": "Slug 'familienfotografie-wien' is already in use",
                        "code": "SLUG_CONFLICT",
                        "request_id": "<request_id>",
                    }
                }
            },
        },
        502: {
            "description": "Text generation unavailable",
            "content": {
                "application/json": {
                    "example": {
                        "error": "Generation unavailable: Empty completion",
                        "code": "GENERATION_UNAVAILABLE",
                        "request_id": "<request_id>",
                    }
                }
            },
        },
    },
)
async def generate_blog_post(
    request: Request,
    images: list[UploadFile] = File(default=[]),
    user_prompt: str = Form(default=""),
    content_guidance: str | None = Form(default=None),
    language: str = Form(default="de"),
    site_url: str | None = Form(default=None),
    publish_option: str = Form(default="draft"),
    scheduled_for: datetime | None = Form(default=None),
    custom_slug: str | None = Form(default=None),
    service: AutoBlogService = Depends(get_autoblog_service),
) -> AutoBlogResponse | JSONResponse:
    """Run the AutoBlog pipeline for the uploaded photos."""
    start_time = time.monotonic()
    request_id = _get_request_id(request)
    logger.debug(
        "AutoBlog generate request",
        extra={
            "request_id": request_id,
            "image_count": len(images),
            "language": language,
            "publish_option": publish_option,
            "prompt_length": len(user_prompt),
        },
    )

    try:
        data = AutoBlogRequest(
            user_prompt=user_prompt,
            content_guidance=content_guidance,
            language=language,
            site_url=site_url,
            publish_option=publish_option,
            scheduled_for=scheduled_for,
            custom_slug=custom_slug,
        )
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "request"
        logger.warning(
            "AutoBlog request validation error",
            extra={"request_id": request_id, "field": field, "message": first["msg"]},
        )
        return _error(
            status.HTTP_400_BAD_REQUEST,
            f"Validation failed for '{field}': {first['msg']}",
            "VALIDATION_ERROR",
            request_id,
        )

    uploads = [
        RawUpload(
            filename=upload.filename or f"image-{index + 1}",
            content_type=upload.content_type,
            data=await upload.read(),
        )
        for index, upload in enumerate(images)
    ]

    try:
        post = await service.generate(uploads, data)

    except AutoBlogValidationError as e:
        logger.warning(
            "AutoBlog validation error",
            extra={
                "request_id": request_id,
                "field": e.field,
                "value": str(e.value)[:100],
                "message": e.message,
            },
        )
        return _error(status.HTTP_400_BAD_REQUEST, str(e), "VALIDATION_ERROR", request_id)

    except GenerationUnavailableError as e:
        logger.error(
            "AutoBlog generation unavailable",
            extra={"request_id": request_id, "reason": e.reason},
        )
        return _error(status.HTTP_502_BAD_GATEWAY, str(e), "GENERATION_UNAVAILABLE", request_id)

    except PersistenceError as e:
        if e.conflict:
            logger.warning(
                "AutoBlog slug conflict",
                extra={"request_id": request_id, "message": e.message},
            )
            return _error(status.HTTP_409_CONFLICT, str(e), "SLUG_CONFLICT", request_id)
        logger.error(
            "AutoBlog persistence error",
            extra={"request_id": request_id, "message": e.message},
        )
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR, str(e), "PERSISTENCE_ERROR", request_id
        )

    duration_ms = (time.monotonic() - start_time) * 1000
    logger.info(
        "AutoBlog post generated",
        extra={
            "request_id": request_id,
            "post_id": post.id,
            "slug": post.slug,
            "status": post.status,
            "duration_ms": round(duration_ms, 2),
        },
    )
    return AutoBlogResponse(post=BlogPostResponse.model_validate(post))
