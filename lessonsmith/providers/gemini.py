"""Gemini image provider using google-genai SDK with native async."""

import asyncio
import base64
import logging
import os
import time

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from lessonsmith import activity_log as log
from lessonsmith.activity_log import ActivityLog
from lessonsmith.providers.base import (
    DEFAULT_IMAGE_STYLE,
    IMAGE_STYLES,
    ImageProvider,
    ProviderError,
    ProviderUnavailable,
    style_prompt,
)

logger = logging.getLogger(__name__)


class GeminiImageProvider(ImageProvider):
    """Google Gemini image model via google-genai SDK."""

    def __init__(self, config: ModelConfig, activity: ActivityLog | None = None) -> None:
        self._config = config
        self._activity = activity or log.activity_log
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderUnavailable(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    async def generate_image(self, description: str, style: str = DEFAULT_IMAGE_STYLE) -> str:
        if style not in IMAGE_STYLES:
            style = DEFAULT_IMAGE_STYLE

        start = time.monotonic()
        log_id = self._activity.record(log.IMAGE_GEN, "Image generation started", {
            "prompt": description[:100] + ("..." if len(description) > 100 else ""),
            "style": style,
            "model": self._config.model,
        })
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._config.model,
                    contents=style_prompt(description, style),
                    config=genai_types.GenerateContentConfig(
                        response_modalities=["IMAGE", "TEXT"],
                    ),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            self._activity.timed(log_id, start)
            self._activity.record(log.ERROR, "Image generation timeout", {"timeout_sec": self._config.timeout_sec})
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            self._activity.timed(log_id, start)
            self._activity.record(log.ERROR, "Image generation failed", {"error": str(exc)})
            raise ProviderError(self._config.name, f"Image generation failed: {exc}") from exc

        duration_ms = self._activity.timed(log_id, start)

        for candidate in response.candidates or []:
            if not candidate.content or not candidate.content.parts:
                continue
            for part in candidate.content.parts:
                if part.inline_data and part.inline_data.data:
                    mime_type = part.inline_data.mime_type or "image/png"
                    encoded = base64.b64encode(part.inline_data.data).decode("ascii")
                    self._activity.record(log.IMAGE_GEN, "Image generated", {
                        "duration": f"{duration_ms}ms",
                        "format": "base64",
                    })
                    return f"data:{mime_type};base64,{encoded}"

        self._activity.record(log.ERROR, "Image generation returned no image")
        raise ProviderError(self._config.name, "No image data in response")
