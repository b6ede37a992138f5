"""Request/response contract: JSON-shaped payloads in, JSON-shaped results out."""

import logging
from dataclasses import dataclass, field

from config.config_loader import ConfigurationError
from lessonsmith import activity_log as log
from lessonsmith.activity_log import ActivityLog
from lessonsmith.generation import PagePipeline
from lessonsmith.models import (
    DEPTH_LEVELS,
    IMAGE_KINDS,
    ConversationMessage,
    GenerationConfig,
    ImageRequest,
    ResolvedImage,
    StyleFlag,
)
from lessonsmith.providers.base import DEFAULT_IMAGE_STYLE, ProviderError

logger = logging.getLogger(__name__)


@dataclass
class GenerationRequest:
    conversation: list[ConversationMessage] = field(default_factory=list)
    config: GenerationConfig | None = None
    user_message: str | None = None


def _parse_conversation(raw) -> list[ConversationMessage]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigurationError("conversation must be a list of messages")
    messages: list[ConversationMessage] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ConfigurationError(f"conversation[{i}] must be an object")
        role = item.get("role")
        content = item.get("content")
        if role not in ("user", "assistant"):
            raise ConfigurationError(f"conversation[{i}].role must be 'user' or 'assistant'")
        if not isinstance(content, str):
            raise ConfigurationError(f"conversation[{i}].content must be a string")
        messages.append(ConversationMessage(role=role, content=content))
    return messages


def _parse_image(i: int, raw) -> ImageRequest:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"images[{i}] must be an object")
    kind = raw.get("kind") or raw.get("type")
    if kind not in IMAGE_KINDS:
        raise ConfigurationError(f"images[{i}] kind must be one of {', '.join(IMAGE_KINDS)}")
    placement = str(raw.get("placement") or "")
    style = str(raw.get("style") or DEFAULT_IMAGE_STYLE)

    if kind == "url":
        source = raw.get("source") or raw.get("url")
        if not isinstance(source, str) or not source.strip():
            raise ConfigurationError(f"images[{i}] requires a url")
        return ImageRequest(kind=kind, source=source.strip(), placement=placement, style=style)

    description = raw.get("description")
    if not isinstance(description, str) or not description.strip():
        raise ConfigurationError(f"images[{i}] requires a description")
    return ImageRequest(kind=kind, description=description.strip(), placement=placement, style=style)


def parse_config(raw) -> GenerationConfig:
    """Validate a camelCase config object into a GenerationConfig.

    Raises:
        ConfigurationError: On any missing or out-of-range field.
    """
    if not isinstance(raw, dict):
        raise ConfigurationError("config must be an object")

    topic = raw.get("topic")
    if not isinstance(topic, str) or not topic.strip():
        raise ConfigurationError("config.topic is required")

    depth = raw.get("depthLevel", raw.get("depth_level", 2))
    if isinstance(depth, bool) or not isinstance(depth, int) or not 0 <= depth < len(DEPTH_LEVELS):
        raise ConfigurationError(f"config.depthLevel must be an integer 0-{len(DEPTH_LEVELS) - 1}")

    flags_raw = raw.get("styleFlags", raw.get("style_flags")) or []
    if not isinstance(flags_raw, list):
        raise ConfigurationError("config.styleFlags must be a list")
    flags: list[StyleFlag] = []
    for flag in flags_raw:
        try:
            parsed = StyleFlag(flag)
        except ValueError:
            valid = ", ".join(f.value for f in StyleFlag)
            raise ConfigurationError(f"Unknown style flag {flag!r} (expected one of {valid})") from None
        if parsed not in flags:
            flags.append(parsed)

    images_raw = raw.get("images") or []
    if not isinstance(images_raw, list):
        raise ConfigurationError("config.images must be a list")

    return GenerationConfig(
        topic=topic.strip(),
        depth_level=depth,
        style_flags=tuple(flags),
        images=tuple(_parse_image(i, img) for i, img in enumerate(images_raw)),
    )


def parse_request(payload) -> GenerationRequest:
    """Validate {conversation, config, userMessage}.

    The first turn (no userMessage) needs a config; a follow-up needs a
    non-empty userMessage and may omit config.
    """
    if not isinstance(payload, dict):
        raise ConfigurationError("Request body must be an object")

    conversation = _parse_conversation(payload.get("conversation"))
    user_message = payload.get("userMessage")
    raw_config = payload.get("config")

    if user_message is None:
        if raw_config is None:
            raise ConfigurationError("config is required for the first turn")
        return GenerationRequest(conversation=conversation, config=parse_config(raw_config))

    if not isinstance(user_message, str) or not user_message.strip():
        raise ConfigurationError("userMessage must be a non-empty string")
    config = parse_config(raw_config) if raw_config is not None else None
    return GenerationRequest(conversation=conversation, config=config, user_message=user_message)


def image_to_dict(image: ResolvedImage) -> dict:
    return {
        "ref": image.ref,
        "permanentUrl": image.permanent_url,
        "kind": image.kind,
        "placement": image.placement,
        "description": image.description,
        "success": image.success,
        "error": image.error,
    }


async def handle_request(payload, pipeline: PagePipeline, activity: ActivityLog | None = None) -> dict:
    """Run one generation request and return a response or error object."""
    activity = activity or log.activity_log
    try:
        request = parse_request(payload)
        result = await pipeline.run(request.conversation, request.config, request.user_message)
    except ConfigurationError as exc:
        activity.record(log.ERROR, "Invalid generation request", {"error": str(exc)})
        return {"error": "Invalid request", "kind": "configuration", "details": str(exc)}
    except ProviderError as exc:
        logger.error("Generation failed: %s", exc)
        return {"error": "Failed to generate content", "kind": "provider", "details": str(exc)}

    return {
        "message": result.message,
        "html": result.markup,
        "imagesGenerated": [image_to_dict(img) for img in result.images_generated],
    }
