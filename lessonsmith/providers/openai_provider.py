"""OpenAI text and image providers using openai SDK with native async."""

import asyncio
import logging
import os
import time

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from lessonsmith import activity_log as log
from lessonsmith.activity_log import ActivityLog
from lessonsmith.models import ConversationMessage, TextResponse
from lessonsmith.providers.base import (
    DEFAULT_IMAGE_STYLE,
    IMAGE_STYLES,
    ImageProvider,
    ProviderError,
    ProviderUnavailable,
    TextProvider,
    style_prompt,
)

logger = logging.getLogger(__name__)

_IMAGE_SIZE = "1024x1024"


def _build_client(config: ModelConfig) -> AsyncOpenAI:
    api_key = os.environ.get(config.api_key_env, "").strip()
    if not api_key:
        raise ProviderUnavailable(config.name, f"Missing API key: {config.api_key_env}")
    if config.base_url:
        return AsyncOpenAI(api_key=api_key, base_url=config.base_url)
    return AsyncOpenAI(api_key=api_key)


class OpenAITextProvider(TextProvider):
    """OpenAI chat completions provider via openai SDK."""

    def __init__(self, config: ModelConfig, activity: ActivityLog | None = None) -> None:
        self._config = config
        self._activity = activity or log.activity_log
        self._client = _build_client(config)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate_text(
        self,
        system_prompt: str,
        messages: list[ConversationMessage],
    ) -> TextResponse:
        start = time.monotonic()
        log_id = self._activity.record(log.API_CALL, "OpenAI API request", {
            "message_count": len(messages),
            "model": self._config.model,
        })
        payload = [{"role": "system", "content": system_prompt}]
        payload += [{"role": m.role, "content": m.content} for m in messages]
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=payload,
                    max_tokens=self._config.max_tokens,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            self._activity.timed(log_id, start)
            self._activity.record(log.ERROR, "OpenAI API timeout", {"timeout_sec": self._config.timeout_sec})
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            self._activity.timed(log_id, start)
            self._activity.record(log.ERROR, "OpenAI API error", {"error": str(exc)})
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        duration_ms = self._activity.timed(log_id, start)
        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            self._activity.record(log.ERROR, "OpenAI API empty response")
            raise ProviderError(self._config.name, "Empty response content")

        input_tokens: int | None = None
        output_tokens: int | None = None
        if response.usage:
            input_tokens = response.usage.prompt_tokens
            output_tokens = response.usage.completion_tokens

        self._activity.record(log.API_CALL, "OpenAI API response", {
            "content_length": len(choice.message.content),
            "tokens": {"input": input_tokens, "output": output_tokens},
            "duration": f"{duration_ms}ms",
        })

        return TextResponse(
            text=choice.message.content,
            model=self._config.model,
            latency_sec=latency,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )


class OpenAIImageProvider(ImageProvider):
    """OpenAI image generation (gpt-image / DALL-E) via openai SDK."""

    def __init__(self, config: ModelConfig, activity: ActivityLog | None = None) -> None:
        self._config = config
        self._activity = activity or log.activity_log
        self._client = _build_client(config)

    def name(self) -> str:
        return self._config.name

    async def generate_image(self, description: str, style: str = DEFAULT_IMAGE_STYLE) -> str:
        if style not in IMAGE_STYLES:
            logger.debug("Unknown image style %r, using %s", style, DEFAULT_IMAGE_STYLE)
            style = DEFAULT_IMAGE_STYLE

        start = time.monotonic()
        log_id = self._activity.record(log.IMAGE_GEN, "Image generation started", {
            "prompt": description[:100] + ("..." if len(description) > 100 else ""),
            "style": style,
            "model": self._config.model,
        })
        try:
            response = await asyncio.wait_for(
                self._client.images.generate(
                    model=self._config.model,
                    prompt=style_prompt(description, style),
                    size=_IMAGE_SIZE,
                    n=1,
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

        image = response.data[0] if response.data else None
        if image is None or not (image.url or image.b64_json):
            self._activity.record(log.ERROR, "Image generation returned no image")
            raise ProviderError(self._config.name, "No image in response")

        # gpt-image models return base64; DALL-E returns a short-lived URL
        payload = image.url or f"data:image/png;base64,{image.b64_json}"

        self._activity.record(log.IMAGE_GEN, "Image generated", {
            "duration": f"{duration_ms}ms",
            "format": "url" if image.url else "base64",
        })
        return payload
