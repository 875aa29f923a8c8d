"""
Gemini image generation: prompt in, inline image (or text) out.

No retries here; a failed call surfaces as ``GenerationError`` and the
processor decides whether the whole job is retried.
"""
import base64
import logging
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from google import genai
from google.genai import errors, types

from .exceptions import GenerationError

logger = logging.getLogger(__name__)

MASTER_DIRECTIVE = """--MASTER DIRECTIVE--
You are an elite concept artist for the film industry. Your task is to generate a single, full-bleed cinematic sketch that visualizes a single moment from a film.
---ABSOLUTE TECHNICAL REQUIREMENTS---
- FRAMING: The sketch MUST fill the entire 16:9 image canvas completely, from edge to edge. There must be ZERO BORDERS, MARGINS, OR PADDING. The artwork itself IS the entire image.
- STYLE: Purely black and white charcoal sketch. The texture and lines of the charcoal should be part of the artwork, not a background.
- COLOR & TEXT: Strictly NO COLOR. Strictly NO TEXT or annotations of any kind.
---ARTISTIC DIRECTION---
- CINEMATOGRAPHY: Treat this as a single, powerful frame from a masterfully directed film. Emphasize dynamic composition, clear camera angles, and dramatic, high-contrast lighting (chiaroscuro).
- MOOD: Evoke a moody, atmospheric aesthetic based on the Scene Content. Shadows are as important as the subjects.
- CLARITY: Ensure character poses, expressions, and key actions are clear and instantly understandable.
Based on the Scene Details provided by the user, generate the specified cinematic sketch."""

# Sections are joined by a literal backslash-n pair, not real newlines.
SECTION_SEPARATOR = "\\n\\n"


def build_mega_prompt(story_anchor_content, scene_action):
    return SECTION_SEPARATOR.join([MASTER_DIRECTIVE, story_anchor_content or "", scene_action or ""])


@dataclass
class InlineImage:
    data: bytes
    mime_type: str = "image/png"


@dataclass
class GenerationResult:
    text: Optional[str] = None
    image: Optional[InlineImage] = None


class GeminiImageService:
    def __init__(self, api_key, model=None):
        self.client = genai.Client(api_key=api_key)
        self.model  = model or settings.GEMINI_IMAGE_MODEL

    def generate(self, prompt: str) -> GenerationResult:
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=[prompt],
                config=types.GenerateContentConfig(
                    response_modalities=["TEXT", "IMAGE"],
                ),
            )
        except errors.APIError as e:
            raise GenerationError(e.message or str(e)) from e
        except Exception as e:
            # transport failures (connection reset, timeout) from the SDK's HTTP client
            raise GenerationError(str(e) or e.__class__.__name__) from e

        try:
            return self._parse(response)
        except ValueError as e:
            raise GenerationError(f"Malformed image payload: {e}") from e

    @staticmethod
    def _parse(response) -> GenerationResult:
        result = GenerationResult()
        candidates = response.candidates or []
        parts = []
        if candidates and candidates[0].content and candidates[0].content.parts:
            parts = candidates[0].content.parts

        for part in parts:
            inline = part.inline_data
            if inline is not None and inline.data:
                data = inline.data
                if isinstance(data, str):
                    data = base64.b64decode(data)
                result.image = InlineImage(data=data, mime_type=inline.mime_type or "image/png")
                break
            if part.text and result.text is None:
                result.text = part.text

        logger.debug(f"Gemini response: {len(parts)} parts, image={'yes' if result.image else 'no'}")
        return result


def gemini_service_factory(api_key):
    return GeminiImageService(api_key=api_key)
