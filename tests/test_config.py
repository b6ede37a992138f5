"""Tests for config/config_loader.py."""

from pathlib import Path

import pytest
import yaml

from config.config_loader import AppConfig, ConfigurationError, HostingConfig, ModelConfig, load_config


@pytest.fixture
def minimal_settings(tmp_path: Path) -> Path:
    """Write a minimal valid settings.yaml to a temp path."""
    settings = {
        "defaults": {
            "text_provider": "claude",
            "image_provider": "openai",
            "max_fix_attempts": 2,
            "output_dir": "./output",
            "system_prompt": "system_prompt.txt",
        },
        "text_models": {
            "claude": {
                "sdk": "anthropic",
                "model": "claude-sonnet-4-20250514",
                "api_key_env": "TEST_CLAUDE_KEY",
                "timeout_sec": 120,
                "max_tokens": 8000,
            }
        },
        "image_models": {
            "openai": {
                "sdk": "openai",
                "model": "gpt-image-1",
                "api_key_env": "TEST_OPENAI_KEY",
                "timeout_sec": 90,
            }
        },
        "hosting": {
            "name": "imagekit",
            "private_key_env": "TEST_IMAGEKIT_KEY",
            "folder": "/pages/",
            "timeout_sec": 45,
        },
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    return path


def test_load_config_returns_app_config(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config, AppConfig)


def test_load_config_defaults(minimal_settings):
    config = load_config(minimal_settings)
    assert config.defaults.text_provider == "claude"
    assert config.defaults.image_provider == "openai"
    assert config.defaults.max_fix_attempts == 2
    assert config.defaults.image_style == "educational"
    assert isinstance(config.defaults.output_dir, Path)


def test_system_prompt_resolved_next_to_settings(minimal_settings):
    config = load_config(minimal_settings)
    assert config.defaults.system_prompt_path == minimal_settings.parent / "system_prompt.txt"


def test_load_config_models(minimal_settings):
    config = load_config(minimal_settings)
    assert isinstance(config.text_models["claude"], ModelConfig)
    assert config.text_models["claude"].max_tokens == 8000
    assert config.image_models["openai"].model == "gpt-image-1"


def test_image_model_max_tokens_optional(minimal_settings):
    config = load_config(minimal_settings)
    assert config.image_models["openai"].max_tokens == 0


def test_load_config_hosting(minimal_settings):
    config = load_config(minimal_settings)
    assert config.hosting == HostingConfig(
        name="imagekit",
        private_key_env="TEST_IMAGEKIT_KEY",
        folder="/pages/",
        timeout_sec=45,
    )


def test_load_config_available_providers_with_key(minimal_settings, monkeypatch):
    monkeypatch.setenv("TEST_CLAUDE_KEY", "sk-test-key")
    monkeypatch.setenv("TEST_IMAGEKIT_KEY", "private_test")
    monkeypatch.delenv("TEST_OPENAI_KEY", raising=False)
    config = load_config(minimal_settings)
    assert config.available_providers == {"claude", "imagekit"}


def test_load_config_no_available_providers_without_key(minimal_settings, monkeypatch):
    for key in ("TEST_CLAUDE_KEY", "TEST_OPENAI_KEY", "TEST_IMAGEKIT_KEY"):
        monkeypatch.delenv(key, raising=False)
    config = load_config(minimal_settings)
    assert config.available_providers == set()


def test_load_config_missing_file():
    with pytest.raises(FileNotFoundError):
        load_config(Path("/nonexistent/settings.yaml"))


def test_model_config_base_url_optional(minimal_settings):
    config = load_config(minimal_settings)
    assert config.text_models["claude"].base_url is None


def test_image_models_section_optional(tmp_path: Path):
    """image_models may be omitted; AI image generation is then unavailable."""
    settings = {
        "defaults": {"text_provider": "claude", "max_fix_attempts": 1, "output_dir": "./out"},
        "text_models": {
            "claude": {"sdk": "anthropic", "model": "m", "api_key_env": "K", "timeout_sec": 60, "max_tokens": 10},
        },
        "hosting": {"private_key_env": "IK", "timeout_sec": 30},
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.dump(settings), encoding="utf-8")
    config = load_config(path)
    assert config.image_models == {}
    assert config.defaults.image_provider is None
    assert config.hosting.folder == "/instructional-pages/"


def test_shipped_settings_load():
    config = load_config()
    assert config.defaults.text_provider in config.text_models
    assert config.defaults.system_prompt_path.exists()


@pytest.mark.parametrize("attempts", [-1, 3])
def test_max_fix_attempts_out_of_range(minimal_settings, attempts):
    settings = yaml.safe_load(minimal_settings.read_text(encoding="utf-8"))
    settings["defaults"]["max_fix_attempts"] = attempts
    minimal_settings.write_text(yaml.dump(settings), encoding="utf-8")
    with pytest.raises(ConfigurationError, match="max_fix_attempts"):
        load_config(minimal_settings)


def test_max_fix_attempts_zero_allowed(minimal_settings):
    settings = yaml.safe_load(minimal_settings.read_text(encoding="utf-8"))
    settings["defaults"]["max_fix_attempts"] = 0
    minimal_settings.write_text(yaml.dump(settings), encoding="utf-8")
    assert load_config(minimal_settings).defaults.max_fix_attempts == 0
