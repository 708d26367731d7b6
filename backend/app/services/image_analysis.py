"""Vision analysis of the uploaded photos.

One single-turn vision request classifies the session and describes the
photos under fixed labels (SESSION TYPE, SUBJECTS, SETTING, EMOTIONS,
CLOTHING, SPECIFICS). The labeled answer is parsed into ImageAnalysis; the
session type is normalized to one of a small set of known values.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass

from app.core.logging import get_logger
from app.integrations.openai_assistant import OpenAIClient
from app.services.errors import SourceDegradedError
from app.services.image_ingestion import UploadedImage

logger = get_logger(__name__)

SESSION_TYPES = ("newborn", "maternity", "business", "family", "couple", "portrait")

IMAGE_ANALYSIS_PROMPT = """Analyze these photography session images very carefully. I need precise details to match content to images:

1. SESSION TYPE: Is this newborn, maternity/pregnancy, family with children, business headshots, couple, or other?
2. SUBJECTS: Describe exactly who is in the photos (pregnant woman, newborn baby, family with X children, business person, etc.)
3. SETTING: Studio with white backdrop, outdoor location, home setting, office environment?
4. EMOTIONS: Professional, candid, intimate, playful, formal?
5. CLOTHING: Formal attire, casual wear, maternity dresses, business suits?
6. SPECIFICS: Any unique elements, props, poses, or notable features?

Be very precise - the content must match these exact images, not generic assumptions."""

# Checked in order; the first keyword hit wins
_SESSION_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("newborn", ("newborn", "baby", "neugeboren")),
    ("maternity", ("maternity", "pregnan", "schwanger", "babybauch")),
    ("business", ("business", "headshot")),
    ("family", ("family", "children", "kids", "familie")),
    ("couple", ("couple", "engagement", "paar")),
)


@dataclass(frozen=True)
class ImageAnalysis:
    """Structured description of the photos of one session."""

    session_type: str
    subjects: str
    setting: str
    emotions: str
    clothing: str
    specifics: str

    def to_prompt_section(self) -> str:
        return "\n".join(
            [
                f"SESSION TYPE: {self.session_type}",
                f"SUBJECTS IN PHOTOS: {self.subjects}",
                f"SETTING: {self.setting}",
                f"EMOTIONS/MOOD: {self.emotions}",
                f"CLOTHING/STYLE: {self.clothing}",
                f"SPECIFIC DETAILS: {self.specifics}",
            ]
        )


FALLBACK_ANALYSIS = ImageAnalysis(
    session_type="family",
    subjects="family members",
    setting="professional studio",
    emotions="warm and professional",
    clothing="coordinated outfits",
    specifics="professional photography session",
)


def detect_session_type(text: str) -> str:
    """Map free text to a known session type, defaulting to portrait."""
    lowered = text.lower()
    for session_type, keywords in _SESSION_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return session_type
    return "portrait"


def _label_value(text: str, label: str) -> str | None:
    # Tolerates "1. SESSION TYPE:", "**SUBJECTS**:" and "- SETTING -" styles
    match = re.search(rf"{label}[*:\-\s]*(.*?)(?:\n|$)", text, re.IGNORECASE)
    if match:
        value = match.group(1).strip().strip("*").strip()
        return value or None
    return None


def parse_image_analysis(text: str) -> ImageAnalysis:
    """Parse a labeled vision answer into ImageAnalysis.

    Missing labels get generic values. The session type comes from the
    SESSION TYPE line when present, else from the whole answer.
    """
    session_line = _label_value(text, "SESSION TYPE")
    return ImageAnalysis(
        session_type=detect_session_type(session_line or text),
        subjects=_label_value(text, "SUBJECTS") or "photography subjects",
        setting=_label_value(text, "SETTING") or "professional setting",
        emotions=_label_value(text, "EMOTIONS") or "warm and professional",
        clothing=_label_value(text, "CLOTHING") or "coordinated attire",
        specifics=_label_value(text, "SPECIFICS") or "professional photography session",
    )


class ImageAnalyzer:
    """Runs the vision request for a batch of uploaded images."""

    def __init__(self, client: OpenAIClient, max_tokens: int = 800) -> None:
        self._client = client
        self._max_tokens = max_tokens

    async def analyze(self, images: Sequence[UploadedImage]) -> ImageAnalysis:
        """Describe the images.

        Raises:
            SourceDegradedError: No images, vision call failed, or empty answer.
        """
        if not images:
            raise SourceDegradedError("image_analysis", "No images to analyze")
        if not self._client.available:
            raise SourceDegradedError("image_analysis", "Vision client not configured")

        result = await self._client.analyze_images(
            [image.data_url for image in images],
            IMAGE_ANALYSIS_PROMPT,
            max_tokens=self._max_tokens,
        )
        if not result.success or not result.text:
            raise SourceDegradedError("image_analysis", result.error or "Empty vision response")

        analysis = parse_image_analysis(result.text)
        logger.info(
            "Images analyzed",
            extra={
                "image_count": len(images),
                "session_type": analysis.session_type,
                "duration_ms": round(result.duration_ms, 2),
            },
        )
        return analysis
