"""Claude API vision backend for label extraction."""

from __future__ import annotations

from . import PROMPT, LabelVisionBackend


class ClaudeVisionBackend(LabelVisionBackend):
    """Read product labels using Claude's vision capability."""

    def __init__(self, api_key: str = "", model: str = "claude-sonnet-4-5-20250929") -> None:
        self._api_key = api_key
        self._model = model

    async def analyze_image(self, image_b64: str, mime_type: str) -> str:
        if not self._api_key:
            raise ValueError(
                "Anthropic API key is not configured. "
                "Set it in the config file or the ANTHROPIC_API_KEY environment variable."
            )

        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic SDK is required: pip install 'kilocheck[claude]'"
            ) from None

        content = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": mime_type,
                    "data": image_b64,
                },
            },
            {"type": "text", "text": PROMPT},
        ]

        client = anthropic.AsyncAnthropic(api_key=self._api_key)
        response = await client.messages.create(
            model=self._model,
            max_tokens=1024,
            messages=[{"role": "user", "content": content}],
        )
        return response.content[0].text
