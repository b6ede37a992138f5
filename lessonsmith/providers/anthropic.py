"""Anthropic Claude text provider using anthropic SDK with native async."""

import asyncio
import logging
import os
import time

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from lessonsmith import activity_log as log
from lessonsmith.activity_log import ActivityLog
from lessonsmith.models import ConversationMessage, TextResponse
from lessonsmith.providers.base import ProviderError, ProviderUnavailable, TextProvider

logger = logging.getLogger(__name__)


class AnthropicTextProvider(TextProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ModelConfig, activity: ActivityLog | None = None) -> None:
        self._config = config
        self._activity = activity or log.activity_log
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderUnavailable(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

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
        log_id = self._activity.record(log.API_CALL, "Claude API request", {
            "message_count": len(messages),
            "model": self._config.model,
        })
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self._config.model,
                    max_tokens=self._config.max_tokens,
                    system=system_prompt,
                    messages=[{"role": m.role, "content": m.content} for m in messages],
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            self._activity.timed(log_id, start)
            self._activity.record(log.ERROR, "Claude API timeout", {"timeout_sec": self._config.timeout_sec})
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            self._activity.timed(log_id, start)
            self._activity.record(log.ERROR, "Claude API error", {"error": str(exc)})
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc

        duration_ms = self._activity.timed(log_id, start)
        latency = time.monotonic() - start

        text_blocks = [b.text for b in (response.content or []) if b.type == "text"]
        if not text_blocks:
            self._activity.record(log.ERROR, "Claude API empty response")
            raise ProviderError(self._config.name, "No text blocks in response")

        text = "\n".join(text_blocks)

        input_tokens: int | None = None
        output_tokens: int | None = None
        if response.usage:
            input_tokens = response.usage.input_tokens
            output_tokens = response.usage.output_tokens

        self._activity.record(log.API_CALL, "Claude API response", {
            "content_length": len(text),
            "tokens": {"input": input_tokens, "output": output_tokens},
            "duration": f"{duration_ms}ms",
        })
        logger.debug("Claude generation: %.2fs, %s in / %s out tokens", latency, input_tokens, output_tokens)

        return TextResponse(
            text=text,
            model=self._config.model,
            latency_sec=latency,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
