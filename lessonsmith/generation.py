"""Conversation orchestration: build the prompt, generate, verify and repair."""

import logging
from pathlib import Path

from config.config_loader import MAX_FIX_ATTEMPTS, ConfigurationError
from lessonsmith import activity_log as log
from lessonsmith.activity_log import ActivityLog
from lessonsmith.images import build_image_context, resolve_images
from lessonsmith.models import (
    DEPTH_LEVELS,
    ConversationMessage,
    GenerationConfig,
    GenerationResult,
    ResolvedImage,
)
from lessonsmith.parsing import parse_response
from lessonsmith.providers.base import ImageProvider, MediaHost, TextProvider
from lessonsmith.verification import build_fix_prompt, requires_fix, summarize, verify

logger = logging.getLogger(__name__)


def load_system_prompt(path: Path) -> str:
    """Read the system prompt file once at pipeline construction."""
    if not path.exists():
        raise ConfigurationError(f"System prompt not found: {path}")
    return path.read_text(encoding="utf-8").strip()


def build_first_turn_prompt(config: GenerationConfig, resolved_images: list[ResolvedImage]) -> str:
    """User message for the first turn: the full page configuration plus image URLs."""
    style_flags = ", ".join(flag.value for flag in config.style_flags) if config.style_flags else "None"
    depth_label = DEPTH_LEVELS[config.depth_level]
    image_context = build_image_context(resolved_images)

    return (
        "Please create an instructional page with the following configuration:\n\n"
        f"Topic: {config.topic}\n"
        f"Depth Level: {config.depth_level} ({depth_label})\n"
        f"Style Flags: {style_flags}{image_context}\n\n"
        "Generate the HTML page now. Use the exact image URLs provided above in "
        "<img> tags with appropriate alt text."
    )


class PagePipeline:
    """One pipeline per process; run() keeps all per-request state local."""

    def __init__(
        self,
        text_provider: TextProvider,
        media_host: MediaHost | None,
        system_prompt: str,
        image_provider: ImageProvider | None = None,
        activity: ActivityLog | None = None,
        max_fix_attempts: int = MAX_FIX_ATTEMPTS,
    ) -> None:
        if not 0 <= max_fix_attempts <= MAX_FIX_ATTEMPTS:
            raise ConfigurationError(f"max_fix_attempts must be between 0 and {MAX_FIX_ATTEMPTS}")
        self._text_provider = text_provider
        self._media_host = media_host
        self._image_provider = image_provider
        self._system_prompt = system_prompt
        self._activity = activity or log.activity_log
        self._max_fix_attempts = max_fix_attempts

    async def run(
        self,
        conversation: list[ConversationMessage],
        config: GenerationConfig | None,
        user_message: str | None = None,
    ) -> GenerationResult:
        """Generate (first turn) or revise (follow-up turn) a page.

        Args:
            conversation: Caller-visible history from earlier turns.
            config: Page configuration; required on the first turn.
            user_message: Follow-up request; None marks the first turn.

        Returns:
            GenerationResult with the final message, markup and images.

        Raises:
            ConfigurationError: If the first turn has no config or a follow-up
                message is blank.
            ProviderError: If any text generation call fails. Not retried.
        """
        first_turn = user_message is None
        if first_turn and config is None:
            raise ConfigurationError("config is required for the first turn")
        if not first_turn and not user_message.strip():
            raise ConfigurationError("user_message must be a non-empty string")

        self._activity.record(log.INFO, "Generate request received", {
            "topic": config.topic if config else None,
            "depth_level": config.depth_level if config else None,
            "conversation_length": len(conversation),
            "has_user_message": not first_turn,
            "image_count": len(config.images) if config else 0,
        })

        resolved_images: list[ResolvedImage] = []
        if first_turn:
            if config.images:
                resolved_images = await resolve_images(
                    config.images,
                    media_host=self._media_host,
                    image_provider=self._image_provider,
                    activity=self._activity,
                )
            prompt = build_first_turn_prompt(config, resolved_images)
        else:
            prompt = user_message

        user_turn = ConversationMessage(role="user", content=prompt)
        working = [*conversation, user_turn]

        try:
            response = await self._text_provider.generate_text(self._system_prompt, working)
            calls = 1
            parsed = parse_response(response.text)
            self._activity.record(log.INFO, "Initial generation complete", {"html_length": len(parsed.markup)})

            findings = []
            attempts = 0
            if first_turn:
                findings = verify(parsed.markup, resolved_images, config)
                while requires_fix(findings) and attempts < self._max_fix_attempts:
                    attempts += 1
                    self._activity.record(log.VERIFICATION, f"Fix attempt {attempts}", {
                        "issue_count": len(findings),
                        "issues": [f.message for f in findings],
                    })
                    # Repair turns go to the model only, never back to the caller
                    working = [
                        *working,
                        ConversationMessage(role="assistant", content=response.text),
                        ConversationMessage(role="user", content=build_fix_prompt(findings)),
                    ]
                    response = await self._text_provider.generate_text(self._system_prompt, working)
                    calls += 1
                    parsed = parse_response(response.text)
                    findings = verify(parsed.markup, resolved_images, config)

                if findings:
                    self._activity.record(log.VERIFICATION, "Verification complete with issues", {
                        "remaining_issues": summarize(findings),
                    })
                else:
                    self._activity.record(log.VERIFICATION, "Verification passed", {"status": "All checks OK"})
        except Exception as exc:
            self._activity.record(log.ERROR, "Generation failed", {"error": str(exc)})
            raise

        self._activity.record(log.INFO, "Generation successful", {
            "html_length": len(parsed.markup),
            "images_processed": len(resolved_images),
            "images_successful": sum(1 for img in resolved_images if img.success),
            "generation_calls": calls,
        })

        return GenerationResult(
            message=parsed.message,
            markup=parsed.markup,
            resolved_images=resolved_images,
            conversation=[
                *conversation,
                user_turn,
                ConversationMessage(role="assistant", content=response.text),
            ],
            findings=findings,
            fix_attempts=attempts,
            generation_calls=calls,
        )
