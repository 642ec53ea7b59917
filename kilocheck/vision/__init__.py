"""Vision backend base class, extraction prompt, response parsing, and factory."""

from __future__ import annotations

import json
import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from ..errors import ErrorCode, create_error
from ..models import ExtractedData, PriceField, ProductField, WeightField

if TYPE_CHECKING:
    from ..config import KiloCheckConfig

PROMPT = """\
Analyze this product label image and extract the following information in JSON format:

{
  "price": {
    "value": number (price amount),
    "currency": string (currency code like "EUR", "USD"),
    "confidence": number (0-1, confidence in extraction)
  },
  "weight": {
    "value": number (weight/volume amount),
    "unit": string (one of: "g", "kg", "ml", "l"),
    "confidence": number (0-1, confidence in extraction)
  },
  "product": {
    "name": string (product name),
    "brand": string (brand name),
    "confidence": number (0-1, confidence in extraction)
  }
}

Rules:
- Extract the sale price (not price per unit if shown separately)
- Extract net weight or volume (not gross weight)
- Use exact values from the label
- Set confidence based on clarity of the text
- If any field cannot be determined, set confidence to 0 and use empty string for strings or 0 for numbers
- Return ONLY the JSON object, no additional text
"""


class LabelVisionBackend(ABC):
    """Abstract base for reading price, weight and product from a label photo."""

    @abstractmethod
    async def analyze_image(self, image_b64: str, mime_type: str) -> str:
        """Send one base64 image with :data:`PROMPT` and return the raw reply text."""
        ...


def _strip_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        # Remove first and last fence lines
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned


def _number(section: dict[str, Any], key: str) -> float:
    value = section.get(key, 0)
    if isinstance(value, bool):
        raise TypeError(f"{key} must be a number")
    number = float(value or 0)
    if not math.isfinite(number):
        raise ValueError(f"{key} must be finite, got {value!r}")
    return number


def _confidence(section: dict[str, Any]) -> float:
    confidence = _number(section, "confidence")
    if not 0.0 <= confidence <= 1.0:
        raise ValueError(f"confidence must be between 0 and 1, got {confidence}")
    return confidence


def parse_response(text: str) -> ExtractedData:
    """Parse the model's JSON reply into :class:`ExtractedData`.

    Raises:
        AppError: API_ERROR if the text is not JSON or lacks the
            price/weight/product objects, or carries a non-finite number
            or a confidence outside 0..1.
    """
    try:
        payload = json.loads(_strip_fences(text))
    except json.JSONDecodeError:
        raise create_error(ErrorCode.API_ERROR, "Failed to parse AI response") from None

    if not isinstance(payload, dict):
        raise create_error(ErrorCode.API_ERROR, "Invalid response structure from AI")
    price = payload.get("price")
    weight = payload.get("weight")
    product = payload.get("product")
    if not all(isinstance(s, dict) for s in (price, weight, product)):
        raise create_error(ErrorCode.API_ERROR, "Invalid response structure from AI")

    try:
        return ExtractedData(
            price=PriceField(
                value=_number(price, "value"),
                currency=str(price.get("currency") or "").strip().upper(),
                confidence=_confidence(price),
            ),
            weight=WeightField(
                value=_number(weight, "value"),
                unit=str(weight.get("unit") or "").strip().lower(),
                confidence=_confidence(weight),
            ),
            product=ProductField(
                name=str(product.get("name") or "").strip(),
                brand=str(product.get("brand") or "").strip(),
                confidence=_confidence(product),
            ),
        )
    except (TypeError, ValueError) as e:
        raise create_error(
            ErrorCode.API_ERROR, f"Invalid response structure from AI: {e}"
        ) from None


def create_backend(config: KiloCheckConfig) -> LabelVisionBackend:
    """Create a vision backend based on configuration."""
    backend_name = config.vision.backend

    match backend_name:
        case "gemini":
            from .gemini import GeminiVisionBackend

            return GeminiVisionBackend(
                api_key=config.vision.gemini.api_key,
                model=config.vision.gemini.model,
            )
        case "claude":
            from .claude import ClaudeVisionBackend

            return ClaudeVisionBackend(
                api_key=config.vision.claude.api_key,
                model=config.vision.claude.model,
            )
        case _:
            raise ValueError(
                f"Unknown vision backend: {backend_name!r} "
                f"(choose gemini or claude)"
            )
