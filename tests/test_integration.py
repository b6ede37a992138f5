"""Integration tests: real API calls, no mocks. Requires .env with the text and hosting keys."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

_REQUIRED_KEYS = ["ANTHROPIC_API_KEY", "IMAGEKIT_PRIVATE_KEY"]
_MISSING_KEYS = [k for k in _REQUIRED_KEYS if not os.environ.get(k, "").strip()]

pytestmark = pytest.mark.integration

if _MISSING_KEYS:
    pytestmark = pytest.mark.skip(reason=f"Missing API keys: {', '.join(_MISSING_KEYS)}")


async def test_full_page_pipeline(tmp_path: Path):
    """Generate a real page with one rehosted image, verify no crash."""
    from config.config_loader import load_config
    from lessonsmith.activity_log import ActivityLog
    from lessonsmith.cli import _build_media_host, _build_text_provider
    from lessonsmith.generation import PagePipeline, load_system_prompt
    from lessonsmith.models import GenerationConfig, ImageRequest, StyleFlag
    from lessonsmith.output import save_page

    config = load_config()
    activity = ActivityLog()
    pipeline = PagePipeline(
        text_provider=_build_text_provider(config, "claude"),
        media_host=_build_media_host(config),
        system_prompt=load_system_prompt(config.defaults.system_prompt_path),
        activity=activity,
        max_fix_attempts=config.defaults.max_fix_attempts,
    )
    generation_config = GenerationConfig(
        topic="How a hash table handles collisions",
        depth_level=1,
        style_flags=(StyleFlag.TECHNICAL,),
        images=(
            ImageRequest(
                kind="url",
                source="https://upload.wikimedia.org/wikipedia/commons/7/7d/Hash_table_3_1_1_0_1_0_0_SP.svg",
                placement="after the introduction",
            ),
        ),
    )

    result = await pipeline.run([], generation_config)

    assert result.message or result.markup
    assert result.generation_calls >= 1
    assert len(result.resolved_images) == 1
    assert len(result.conversation) == 2
    assert activity.stats()["tokens_used"] > 0

    saved = save_page(result, tmp_path / "output", generation_config.topic)
    assert saved.exists()
