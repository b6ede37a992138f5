"""Shared pytest fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import AppConfig, DefaultsConfig, HostingConfig, ModelConfig
from lessonsmith.activity_log import ActivityLog
from lessonsmith.models import (
    ConversationMessage,
    GenerationConfig,
    ImageRequest,
    ResolvedImage,
    StyleFlag,
    TextResponse,
)
from lessonsmith.providers.base import ImageProvider, MediaHost, TextProvider

VALID_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Binary search</title>
</head>
<body>
  <main>
    <h1>Binary search</h1>
    <p>Binary search halves the search interval on every step until the target is found.</p>
  </main>
</body>
</html>"""


def page_with(body: str) -> str:
    """Wrap a body fragment in a page long enough to pass the presence check."""
    return (
        "<!DOCTYPE html>\n<html lang=\"en\">\n<head><meta charset=\"utf-8\"><title>Lesson</title></head>\n"
        "<body>\n<main>\n<h1>Lesson</h1>\n<p>This lesson explains the topic step by step with examples.</p>\n"
        f"{body}\n</main>\n</body>\n</html>"
    )


def reply(markup: str, message: str = "Here is your page.") -> str:
    """Raw model output in the expected message + fenced block shape."""
    return f"{message}\n\n```html\n{markup}\n```"


def text_response(text: str) -> TextResponse:
    return TextResponse(text=text, model="mock-model", latency_sec=0.1, input_tokens=10, output_tokens=20)


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="test",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        max_tokens=1024,
        base_url=None,
    )


@pytest.fixture
def sample_hosting_config() -> HostingConfig:
    return HostingConfig(
        name="imagekit",
        private_key_env="TEST_IMAGEKIT_KEY",
        folder="/tests/",
        timeout_sec=10,
    )


@pytest.fixture
def sample_app_config(tmp_path: Path, sample_hosting_config: HostingConfig) -> AppConfig:
    model_cfg = ModelConfig(
        name="claude",
        sdk="anthropic",
        model="claude-sonnet-4-20250514",
        api_key_env="ANTHROPIC_API_KEY",
        timeout_sec=60,
        max_tokens=4096,
    )
    return AppConfig(
        defaults=DefaultsConfig(
            text_provider="claude",
            image_provider="openai",
            max_fix_attempts=2,
            output_dir=tmp_path / "output",
            system_prompt_path=tmp_path / "system_prompt.txt",
        ),
        text_models={"claude": model_cfg},
        image_models={},
        hosting=sample_hosting_config,
        available_providers={"claude"},
    )


@pytest.fixture
def activity() -> ActivityLog:
    return ActivityLog()


@pytest.fixture
def sample_config() -> GenerationConfig:
    return GenerationConfig(
        topic="Binary search",
        depth_level=2,
        style_flags=(StyleFlag.VISUAL, StyleFlag.TECHNICAL),
    )


@pytest.fixture
def config_with_images() -> GenerationConfig:
    return GenerationConfig(
        topic="Photosynthesis",
        depth_level=1,
        images=(
            ImageRequest(kind="url", source="https://cdn.example.org/leaf.png", placement="after the intro"),
            ImageRequest(kind="generate", description="Chloroplast diagram", placement="in the light reactions section"),
        ),
    )


@pytest.fixture
def resolved_image() -> ResolvedImage:
    return ResolvedImage(
        ref="image-1",
        permanent_url="https://host/img1.png",
        kind="generate",
        placement="after the intro",
        description="Chloroplast diagram",
        success=True,
    )


class MockTextProvider(TextProvider):
    """Test double TextProvider; generate_text is an AsyncMock."""

    def __init__(self, provider_name: str = "mock", replies: list[str] | None = None) -> None:
        self._name = provider_name
        responses = [text_response(r) for r in (replies or [reply(VALID_PAGE)])]
        # Shadow the class method with an AsyncMock at the instance level.
        self.generate_text = AsyncMock(side_effect=responses)  # type: ignore[assignment]

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "mock-model"

    async def generate_text(self, system_prompt: str, messages: list[ConversationMessage]) -> TextResponse:  # type: ignore[override]
        """Default implementation; replaced by AsyncMock in __init__."""
        return text_response(reply(VALID_PAGE))


class MockImageProvider(ImageProvider):
    """Test double ImageProvider returning a data URL per description."""

    def __init__(self) -> None:
        self.generate_image = AsyncMock(  # type: ignore[assignment]
            side_effect=lambda description, style="educational": f"data:image/png;base64,{description[:4]}"
        )

    def name(self) -> str:
        return "mock-images"

    async def generate_image(self, description: str, style: str = "educational") -> str:  # type: ignore[override]
        return "data:image/png;base64,AAAA"


class MockMediaHost(MediaHost):
    """Test double MediaHost; hosts everything under https://host/."""

    def __init__(self) -> None:
        self.uploads: list[str] = []

        async def _host(source: str) -> str:
            self.uploads.append(source)
            return f"https://host/img{len(self.uploads)}.png"

        self.host_image = AsyncMock(side_effect=_host)  # type: ignore[assignment]

    def name(self) -> str:
        return "mock-host"

    async def host_image(self, source: str) -> str:  # type: ignore[override]
        return "https://host/default.png"


@pytest.fixture
def mock_text_provider() -> MockTextProvider:
    return MockTextProvider()


@pytest.fixture
def mock_image_provider() -> MockImageProvider:
    return MockImageProvider()


@pytest.fixture
def mock_media_host() -> MockMediaHost:
    return MockMediaHost()
