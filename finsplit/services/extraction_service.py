"""Receipt extraction: one Extractor interface, a vision model and a fallback.

The facade callers use is whatever build_extractor() returns:

    FallbackExtractor(VisionExtractor(...), SyntheticExtractor())

so the pipeline never branches on which extractor produced the data; the
provenance on the result says so.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ollama import AsyncClient, ResponseError

from finsplit.models import Provenance
from finsplit.prompts import RECEIPT_EXTRACTION_PROMPT
from finsplit.services.config import Settings
from finsplit.services.errors import ExtractionFailure
from finsplit.services.receipt_fields import has_minimum_fields

logger = logging.getLogger(__name__)

REAL_CONFIDENCE = 0.95
SYNTHETIC_CONFIDENCE = 0.8

QUOTA_STATUS_CODE = 429
QUOTA_ERROR_MARKER = "insufficient_quota"


@dataclass
class ExtractionResult:
    """Outcome of a successful extraction."""

    data: dict[str, Any]
    confidence: float
    provenance: Provenance
    success: bool = True
    error: Optional[str] = None
    """Primary extractor failure reason when the fallback produced the data."""
    metadata: dict[str, Any] = field(default_factory=dict)


class Extractor(ABC):
    """Turns a base64 receipt image into the receipt JSON payload."""

    name: str = "extractor"

    @abstractmethod
    async def extract(self, image_b64: str, hint: Optional[str] = None) -> ExtractionResult:
        """Extract receipt data.

        Raises:
            ExtractionFailure: no usable data could be produced
        """


def extract_first_json_object(text: str) -> Optional[str]:
    """Return the first balanced {...} block in free text, or None.

    Braces inside JSON string literals are ignored, so prose around the
    object or a markdown fence does not confuse the match.

    Examples:
        >>> extract_first_json_object('Aqui está: {"a": "}"} fim')
        '{"a": "}"}'
        >>> extract_first_json_object("sem json") is None
        True
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        # Unbalanced from this brace; try the next opening brace
        start = text.find("{", start + 1)
    return None


def parse_model_response(content: str) -> dict[str, Any]:
    """Parse the extractor's free-text answer into the receipt payload.

    Raises:
        ExtractionFailure: empty answer, no JSON object, invalid JSON, or a
            payload without total, payee or establishment
    """
    if not content or not content.strip():
        raise ExtractionFailure("empty response")

    candidate = extract_first_json_object(content)
    if candidate is None:
        raise ExtractionFailure("no JSON object in response")

    try:
        payload = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ExtractionFailure(f"invalid JSON in response: {e.msg}") from e

    if not isinstance(payload, dict):
        raise ExtractionFailure("JSON response is not an object")
    if not has_minimum_fields(payload):
        raise ExtractionFailure("response has no total, payee or establishment")
    return payload


def is_quota_error(error: ResponseError) -> bool:
    """Whether the AI service refused the call for rate limit or quota reasons."""
    return error.status_code == QUOTA_STATUS_CODE or QUOTA_ERROR_MARKER in str(error.error)


class VisionExtractor(Extractor):
    """Extractor backed by an Ollama vision model."""

    name = "vision"

    def __init__(
        self,
        host: str,
        model: str,
        timeout: float = 60.0,
        client: AsyncClient | None = None,
        prompt: str = RECEIPT_EXTRACTION_PROMPT,
    ):
        """Initialize the extractor.

        Args:
            host: Ollama host URL
            model: Vision-capable model name
            timeout: Request timeout in seconds
            client: Pre-built client (tests inject a mock)
            prompt: Structured-output instruction sent with the image
        """
        self.model = model
        self.prompt = prompt
        self.client = client or AsyncClient(host=host, timeout=timeout)

    def _build_messages(self, image_b64: str, hint: Optional[str]) -> list[dict[str, Any]]:
        content = self.prompt
        if hint:
            content = f"{content}\n\nMensagem enviada junto com a imagem: {hint}"
        return [{"role": "user", "content": content, "images": [image_b64]}]

    async def extract(self, image_b64: str, hint: Optional[str] = None) -> ExtractionResult:
        logger.info("extraction.vision: calling %s (image length %s)", self.model, len(image_b64))
        try:
            response = await self.client.chat(
                model=self.model,
                messages=self._build_messages(image_b64, hint),
                options={"temperature": 0},
            )
        except ResponseError as e:
            quota = is_quota_error(e)
            logger.warning(
                "extraction.vision: AI service error (status %s, quota=%s): %s",
                e.status_code,
                quota,
                e.error,
            )
            reason = "quota exceeded" if quota else f"AI service error {e.status_code}"
            raise ExtractionFailure(reason, quota_exceeded=quota) from e
        except Exception as e:
            logger.error("extraction.vision: AI service call failed: %s", e, exc_info=True)
            raise ExtractionFailure(f"AI service unavailable: {e.__class__.__name__}") from e

        content = response.message.content or ""
        logger.debug("extraction.vision: raw response %r", content[:200])

        payload = parse_model_response(content)
        logger.info("extraction.vision: parsed keys %s", sorted(payload))
        return ExtractionResult(
            data=payload,
            confidence=REAL_CONFIDENCE,
            provenance=Provenance.REAL,
            metadata={"model": self.model},
        )


class FallbackExtractor(Extractor):
    """Use the primary extractor; on ExtractionFailure use the fallback.

    A failure of the fallback itself propagates to the caller.
    """

    name = "fallback"

    def __init__(self, primary: Extractor, fallback: Extractor):
        self.primary = primary
        self.fallback = fallback

    async def extract(self, image_b64: str, hint: Optional[str] = None) -> ExtractionResult:
        try:
            return await self.primary.extract(image_b64, hint)
        except ExtractionFailure as e:
            logger.warning(
                "extraction: %s extractor failed (%s), using %s extractor",
                self.primary.name,
                e.reason,
                self.fallback.name,
            )
            result = await self.fallback.extract(image_b64, hint)
            result.error = e.reason
            return result


def build_extractor(settings: Settings) -> Extractor:
    """Compose the extractor configured for this deployment."""
    vision = VisionExtractor(
        host=settings.ollama_host,
        model=settings.ollama_model,
        timeout=settings.ai_timeout_seconds,
    )
    if not settings.synthetic_fallback_enabled:
        return vision

    from finsplit.services.synthetic_extractor import SyntheticExtractor

    return FallbackExtractor(vision, SyntheticExtractor())


__all__ = [
    "REAL_CONFIDENCE",
    "SYNTHETIC_CONFIDENCE",
    "ExtractionResult",
    "Extractor",
    "VisionExtractor",
    "FallbackExtractor",
    "build_extractor",
    "extract_first_json_object",
    "parse_model_response",
    "is_quota_error",
]
