"""Pure dataclasses for the page generation pipeline. No logic, no deps."""

from dataclasses import dataclass, field
from enum import Enum


class StyleFlag(str, Enum):
    ACCESSIBLE = "accessible"
    VISUAL = "visual"
    TECHNICAL = "technical"
    CONVERSATIONAL = "conversational"
    HUMOR = "humor"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class FindingType(str, Enum):
    MISSING_HTML = "missing_html"
    UNUSED_IMAGE = "unused_image"
    MISSING_ALT_TEXT = "missing_alt_text"
    CODE_FORMAT = "code_format"
    MISSING_HIGHLIGHT_SUPPORT = "missing_highlight_support"
    PLACEHOLDER_CONTENT = "placeholder_content"


# Ordinal scale, index == depth level
DEPTH_LEVELS: tuple[str, ...] = ("minimal", "overview", "standard", "detailed", "exhaustive")

IMAGE_KINDS = ("url", "generate")


@dataclass(frozen=True)
class ImageRequest:
    kind: str                          # "url" or "generate"
    placement: str = ""                # free-text hint, only copied into prompts
    source: str | None = None          # url kind
    description: str | None = None     # generate kind
    style: str = "educational"


@dataclass(frozen=True)
class GenerationConfig:
    topic: str
    depth_level: int
    style_flags: tuple[StyleFlag, ...] = ()
    images: tuple[ImageRequest, ...] = ()


@dataclass
class ResolvedImage:
    ref: str                           # positional tag, "image-1" ...
    permanent_url: str | None
    kind: str
    placement: str
    success: bool
    description: str | None = None
    error: str | None = None


@dataclass
class ConversationMessage:
    role: str                          # "user" or "assistant"
    content: str


@dataclass(frozen=True)
class Finding:
    type: FindingType
    severity: Severity
    message: str
    details: dict | None = None


@dataclass
class TextResponse:
    text: str
    model: str
    latency_sec: float
    input_tokens: int | None = None
    output_tokens: int | None = None


@dataclass
class ParsedResponse:
    message: str
    markup: str


@dataclass
class GenerationResult:
    message: str
    markup: str
    resolved_images: list[ResolvedImage] = field(default_factory=list)
    conversation: list[ConversationMessage] = field(default_factory=list)
    findings: list[Finding] = field(default_factory=list)
    fix_attempts: int = 0
    generation_calls: int = 0

    @property
    def images_generated(self) -> list[ResolvedImage]:
        return [img for img in self.resolved_images if img.kind == "generate" and img.success]
