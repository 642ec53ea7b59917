"""Gemini API vision backend for label extraction."""

from __future__ import annotations

import base64

from . import PROMPT, LabelVisionBackend


class GeminiVisionBackend(LabelVisionBackend):
    """Read product labels using Google Gemini's vision capability."""

    def __init__(self, api_key: str = "", model: str = "gemini-2.0-flash") -> None:
        self._api_key = api_key
        self._model = model

    async def analyze_image(self, image_b64: str, mime_type: str) -> str:
        if not self._api_key:
            raise ValueError(
                "Gemini API key is not configured. "
                "Set it in the config file or the GEMINI_API_KEY environment variable."
            )

        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError(
                "google-generativeai SDK is required: pip install 'kilocheck[gemini]'"
            ) from None

        genai.configure(api_key=self._api_key)
        model = genai.GenerativeModel(self._model)

        parts: list = [
            PROMPT,
            {"mime_type": mime_type, "data": base64.b64decode(image_b64)},
        ]
        response = await model.generate_content_async(parts)
        return response.text
