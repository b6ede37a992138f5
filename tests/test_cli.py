"""Tests for request building and provider selection in lessonsmith/cli.py."""

import pytest
from click.testing import CliRunner

from config.config_loader import ConfigurationError, ModelConfig
from lessonsmith.cli import (
    _build_generation_config,
    _build_image_provider,
    _build_media_host,
    _build_text_provider,
    _split_spec,
    main,
)
from lessonsmith.models import StyleFlag
from lessonsmith.providers.anthropic import AnthropicTextProvider


def test_split_spec_with_placement():
    assert _split_spec("https://x.org/a.png | top of page") == ("https://x.org/a.png", "top of page")


def test_split_spec_without_placement():
    assert _split_spec("Leaf diagram") == ("Leaf diagram", "")


def test_build_generation_config_orders_images():
    config = _build_generation_config(
        topic="Photosynthesis",
        depth=3,
        styles=("visual", "humor", "visual"),
        image_urls=("https://x.org/leaf.png|intro",),
        generate_images=("Chloroplast|light reactions",),
        image_style="diagram",
    )
    assert config.depth_level == 3
    assert config.style_flags == (StyleFlag.VISUAL, StyleFlag.HUMOR)
    assert [img.kind for img in config.images] == ["url", "generate"]
    assert config.images[0].source == "https://x.org/leaf.png"
    assert config.images[0].placement == "intro"
    assert config.images[1].description == "Chloroplast"
    assert config.images[1].style == "diagram"


def test_build_text_provider_unknown(sample_app_config):
    with pytest.raises(ConfigurationError, match="Unknown text provider 'grok'"):
        _build_text_provider(sample_app_config, "grok")


def test_build_text_provider_missing_key(sample_app_config, monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
        _build_text_provider(sample_app_config, "claude")


def test_build_text_provider_claude(sample_app_config, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    provider = _build_text_provider(sample_app_config, "claude")
    assert isinstance(provider, AnthropicTextProvider)
    assert provider.model_string() == "claude-sonnet-4-20250514"


def test_build_image_provider_disabled_when_unknown(sample_app_config):
    assert _build_image_provider(sample_app_config, "openai") is None
    assert _build_image_provider(sample_app_config, None) is None


def test_build_image_provider_disabled_without_key(sample_app_config, monkeypatch):
    monkeypatch.delenv("TEST_OPENAI_IMAGE_KEY", raising=False)
    sample_app_config.image_models["openai"] = ModelConfig(
        name="openai", sdk="openai", model="gpt-image-1", api_key_env="TEST_OPENAI_IMAGE_KEY",
        timeout_sec=60, max_tokens=0,
    )
    assert _build_image_provider(sample_app_config, "openai") is None


def test_build_media_host_disabled_without_key(sample_app_config, monkeypatch):
    monkeypatch.delenv("TEST_IMAGEKIT_KEY", raising=False)
    assert _build_media_host(sample_app_config) is None


def test_cli_requires_topic_or_continue(monkeypatch):
    monkeypatch.setattr("lessonsmith.cli.load_dotenv", lambda: None)
    result = CliRunner().invoke(main, ["--skip-health-check"])
    assert result.exit_code == 1
    assert "Provide a TOPIC" in result.output


def test_cli_message_requires_continue(monkeypatch):
    monkeypatch.setattr("lessonsmith.cli.load_dotenv", lambda: None)
    result = CliRunner().invoke(main, ["Tides", "--message", "Add a quiz"])
    assert result.exit_code == 1
    assert "--message requires --continue" in result.output


def test_cli_rejects_depth_out_of_range():
    result = CliRunner().invoke(main, ["Tides", "--depth", "7"])
    assert result.exit_code == 2
