"""Load settings.yaml into typed dataclasses. Checks provider credentials at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_CONFIG_DIR = Path(__file__).parent
_SETTINGS_PATH = _CONFIG_DIR / "settings.yaml"

# Upper bound on repair regenerations per request
MAX_FIX_ATTEMPTS = 2


class ConfigurationError(Exception):
    """Raised when a required input field or provider credential is missing."""


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class HostingConfig:
    name: str
    private_key_env: str
    folder: str
    timeout_sec: int


@dataclass
class DefaultsConfig:
    text_provider: str
    image_provider: str | None
    max_fix_attempts: int
    output_dir: Path
    system_prompt_path: Path
    image_style: str = "educational"


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    text_models: dict[str, ModelConfig]
    image_models: dict[str, ModelConfig]
    hosting: HostingConfig
    available_providers: set[str] = field(default_factory=set)


def _load_models(section: dict, available: set[str]) -> dict[str, ModelConfig]:
    models: dict[str, ModelConfig] = {}
    for provider_name, model_raw in section.items():
        models[provider_name] = ModelConfig(
            name=provider_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw.get("max_tokens", 0)),
            base_url=model_raw.get("base_url"),
        )

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s (set %s in .env)",
                provider_name,
                model_raw["api_key_env"],
            )
    return models


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ConfigurationError if
    max_fix_attempts is out of range.
    Logs which providers have credentials but does not raise; adapters
    raise ProviderUnavailable when they are built without one.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    prompt_path = Path(defaults_raw.get("system_prompt", "system_prompt.txt"))
    if not prompt_path.is_absolute():
        prompt_path = settings_path.parent / prompt_path

    max_fix_attempts = int(defaults_raw["max_fix_attempts"])
    if not 0 <= max_fix_attempts <= MAX_FIX_ATTEMPTS:
        raise ConfigurationError(
            f"defaults.max_fix_attempts must be between 0 and {MAX_FIX_ATTEMPTS}, got {max_fix_attempts}"
        )

    defaults = DefaultsConfig(
        text_provider=str(defaults_raw["text_provider"]),
        image_provider=defaults_raw.get("image_provider"),
        max_fix_attempts=max_fix_attempts,
        output_dir=Path(defaults_raw["output_dir"]),
        system_prompt_path=prompt_path,
        image_style=str(defaults_raw.get("image_style", "educational")),
    )

    available_providers: set[str] = set()
    text_models = _load_models(raw["text_models"], available_providers)
    image_models = _load_models(raw.get("image_models", {}), available_providers)

    hosting_raw = raw["hosting"]
    hosting = HostingConfig(
        name=str(hosting_raw.get("name", "imagekit")),
        private_key_env=hosting_raw["private_key_env"],
        folder=str(hosting_raw.get("folder", "/instructional-pages/")),
        timeout_sec=int(hosting_raw["timeout_sec"]),
    )
    if os.environ.get(hosting.private_key_env, "").strip():
        available_providers.add(hosting.name)
    else:
        logger.info(
            "Media host unavailable (no key): %s (set %s in .env)",
            hosting.name,
            hosting.private_key_env,
        )

    return AppConfig(
        defaults=defaults,
        text_models=text_models,
        image_models=image_models,
        hosting=hosting,
        available_providers=available_providers,
    )
