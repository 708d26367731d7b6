"""Services layer - Business logic and orchestration.

Services coordinate between repositories, integrations, and other services
to implement business use cases. They contain no direct database or
external API access - that's delegated to repositories and integrations.
"""

from app.services.autoblog import AutoBlogService
from app.services.content_formatter import CtaLinks, format_content
from app.services.context_aggregation import ContextAggregator, ContextBundle
from app.services.errors import (
    AutoBlogError,
    AutoBlogValidationError,
    GenerationFailedError,
    GenerationTimeoutError,
    GenerationUnavailableError,
    PersistenceError,
    SourceDegradedError,
)
from app.services.generation_orchestrator import (
    GenerationAttempt,
    GenerationOrchestrator,
    GenerationRequest,
    GenerationResult,
    GenerationState,
    InvalidTransitionError,
)
from app.services.image_analysis import ImageAnalysis, ImageAnalyzer
from app.services.image_embedder import UsedImageRegistry, embed_images
from app.services.image_ingestion import ImageIngestor, RawUpload, UploadedImage
from app.services.publish_decider import PublicationDecision, decide, validate_request
from app.services.response_parser import (
    FormatConfidence,
    ParsedDocument,
    ParserConfig,
    parse_response,
)

__all__ = [
    # Pipeline
    "AutoBlogService",
    # Errors
    "AutoBlogError",
    "AutoBlogValidationError",
    "GenerationFailedError",
    "GenerationTimeoutError",
    "GenerationUnavailableError",
    "PersistenceError",
    "SourceDegradedError",
    # Ingestion
    "ImageIngestor",
    "RawUpload",
    "UploadedImage",
    # Context
    "ContextAggregator",
    "ContextBundle",
    "ImageAnalysis",
    "ImageAnalyzer",
    # Generation
    "GenerationAttempt",
    "GenerationOrchestrator",
    "GenerationRequest",
    "GenerationResult",
    "GenerationState",
    "InvalidTransitionError",
    # Parsing and formatting
    "FormatConfidence",
    "ParsedDocument",
    "ParserConfig",
    "parse_response",
    "CtaLinks",
    "format_content",
    "UsedImageRegistry",
    "embed_images",
    # Publication
    "PublicationDecision",
    "decide",
    "validate_request",
]
