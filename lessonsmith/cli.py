"""Click CLI: loads config, builds providers, runs the page pipeline and exports the result."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from config.config_loader import AppConfig, ConfigurationError, load_config
from lessonsmith.activity_log import activity_log
from lessonsmith.generation import PagePipeline, load_system_prompt
from lessonsmith.healthcheck import run_health_checks
from lessonsmith.models import DEPTH_LEVELS, ConversationMessage, GenerationConfig, ImageRequest, StyleFlag
from lessonsmith.output import load_conversation, print_result, save_conversation, save_page
from lessonsmith.providers.anthropic import AnthropicTextProvider
from lessonsmith.providers.base import IMAGE_STYLES, ImageProvider, MediaHost, ProviderError, TextProvider
from lessonsmith.providers.gemini import GeminiImageProvider
from lessonsmith.providers.imagekit import ImageKitHost
from lessonsmith.providers.openai_provider import OpenAIImageProvider, OpenAITextProvider

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

TEXT_PROVIDER_CLASSES: dict[str, type[TextProvider]] = {
    "claude": AnthropicTextProvider,
    "openai": OpenAITextProvider,
}

IMAGE_PROVIDER_CLASSES: dict[str, type[ImageProvider]] = {
    "openai": OpenAIImageProvider,
    "gemini": GeminiImageProvider,
}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_text_provider(config: AppConfig, name: str) -> TextProvider:
    """Build the text provider. Raises ConfigurationError if unknown or keyless."""
    if name not in TEXT_PROVIDER_CLASSES or name not in config.text_models:
        raise ConfigurationError(f"Unknown text provider '{name}'")
    return TEXT_PROVIDER_CLASSES[name](config.text_models[name])


def _build_image_provider(config: AppConfig, name: str | None) -> ImageProvider | None:
    """Build the optional image provider. Returns None when it cannot be built."""
    if not name:
        return None
    if name not in IMAGE_PROVIDER_CLASSES or name not in config.image_models:
        logging.warning("Image provider '%s' unknown, AI images disabled", name)
        return None
    try:
        return IMAGE_PROVIDER_CLASSES[name](config.image_models[name])
    except ConfigurationError as exc:
        logging.warning("Image provider unavailable, AI images disabled: %s", exc)
        return None


def _build_media_host(config: AppConfig) -> MediaHost | None:
    try:
        return ImageKitHost(config.hosting)
    except ConfigurationError as exc:
        logging.warning("Media host unavailable, images disabled: %s", exc)
        return None


def _split_spec(value: str) -> tuple[str, str]:
    """Split 'VALUE|placement' into (value, placement)."""
    main, _, placement = value.partition("|")
    return main.strip(), placement.strip()


def _build_generation_config(
    topic: str,
    depth: int,
    styles: tuple[str, ...],
    image_urls: tuple[str, ...],
    generate_images: tuple[str, ...],
    image_style: str,
) -> GenerationConfig:
    images: list[ImageRequest] = []
    for spec in image_urls:
        url, placement = _split_spec(spec)
        images.append(ImageRequest(kind="url", source=url, placement=placement))
    for spec in generate_images:
        description, placement = _split_spec(spec)
        images.append(ImageRequest(kind="generate", description=description, placement=placement, style=image_style))

    flags: list[StyleFlag] = []
    for style in styles:
        if StyleFlag(style) not in flags:
            flags.append(StyleFlag(style))

    return GenerationConfig(
        topic=topic,
        depth_level=depth,
        style_flags=tuple(flags),
        images=tuple(images),
    )


def _check_provider(provider: TextProvider) -> None:
    """Ping the text provider and exit if it is unreachable."""
    console.print("\n[bold]Checking provider...[/bold]")
    results = asyncio.run(run_health_checks({provider.name(): provider}))
    ok, err = results[provider.name()]
    if ok:
        console.print(f"  [green]OK  [/green] {provider.name()}\n")
        return
    short_err = err.splitlines()[0][:120] if err else "unknown error"
    console.print(f"  [red]FAIL[/red] {provider.name()}: {short_err}")
    sys.exit(1)


@click.command()
@click.argument("topic", required=False)
@click.option("--depth", default=2, type=click.IntRange(0, len(DEPTH_LEVELS) - 1),
              help="Depth level 0 (minimal) to 4 (exhaustive)")
@click.option("--style", "styles", multiple=True, type=click.Choice([f.value for f in StyleFlag]),
              help="Style flag, repeatable")
@click.option("--image-url", "image_urls", multiple=True, metavar="URL|PLACEMENT",
              help="Existing image to rehost and include, repeatable")
@click.option("--generate-image", "generate_images", multiple=True, metavar="DESCRIPTION|PLACEMENT",
              help="Image to generate with AI and include, repeatable")
@click.option("--image-style", default=None, type=click.Choice(sorted(IMAGE_STYLES)),
              help="Style profile for generated images (default: from config)")
@click.option("--continue", "continue_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="Conversation file from an earlier run to continue")
@click.option("--message", "user_message", default=None, help="Follow-up request (requires --continue)")
@click.option("--provider", "text_provider", default=None, help="Text provider (default: from config)")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--activity-log", "activity_path", default=None, type=click.Path(dir_okay=False),
              help="Write the activity log as JSON to this file")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the API connectivity check at startup")
def main(
    topic: str | None,
    depth: int,
    styles: tuple[str, ...],
    image_urls: tuple[str, ...],
    generate_images: tuple[str, ...],
    image_style: str | None,
    continue_path: str | None,
    user_message: str | None,
    text_provider: str | None,
    output_path: str | None,
    activity_path: str | None,
    verbose: bool,
    skip_health_check: bool,
) -> None:
    """lessonsmith -- instructional HTML pages, generated and self-checked.

    \b
    Examples:
      lessonsmith "Binary search" --depth 2 --style visual --style technical
      lessonsmith "Photosynthesis" --generate-image "Leaf cross-section|after the intro"
      lessonsmith "Git basics" --image-url "https://example.org/git.png|top of page"
      lessonsmith --continue output/20250101_120000_git-basics.json --message "Add a quiz"
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ConfigurationError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    if user_message is not None and not continue_path:
        console.print("[bold red]Error:[/bold red] --message requires --continue.")
        sys.exit(1)
    if continue_path and not (user_message and user_message.strip()):
        console.print("[bold red]Error:[/bold red] --continue requires a non-empty --message.")
        sys.exit(1)
    if not continue_path and not topic:
        console.print("[bold red]Error:[/bold red] Provide a TOPIC argument or --continue with --message.")
        sys.exit(1)

    output_dir = Path(output_path) if output_path else config.defaults.output_dir

    try:
        provider = _build_text_provider(config, text_provider or config.defaults.text_provider)
        system_prompt = load_system_prompt(config.defaults.system_prompt_path)
    except ConfigurationError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)

    if not skip_health_check:
        _check_provider(provider)

    conversation: list[ConversationMessage] = []
    generation_config: GenerationConfig | None = None
    if continue_path:
        conversation, saved_topic = load_conversation(Path(continue_path))
        topic = topic or saved_topic or Path(continue_path).stem
    else:
        generation_config = _build_generation_config(
            topic, depth, styles, image_urls, generate_images,
            image_style or config.defaults.image_style,
        )

    needs_images = generation_config is not None and bool(generation_config.images)
    pipeline = PagePipeline(
        text_provider=provider,
        media_host=_build_media_host(config) if needs_images else None,
        system_prompt=system_prompt,
        image_provider=_build_image_provider(config, config.defaults.image_provider) if generate_images else None,
        max_fix_attempts=config.defaults.max_fix_attempts,
    )

    console.print(f"\n[bold cyan]lessonsmith[/bold cyan]: {provider.name()} ({provider.model_string()})")
    console.print(f"Topic: [italic]{topic[:80]}{'...' if len(topic) > 80 else ''}[/italic]\n")

    try:
        with console.status("Generating page..."):
            result = asyncio.run(pipeline.run(conversation, generation_config, user_message))
    except (ConfigurationError, ProviderError) as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(1)
    finally:
        if activity_path:
            activity_log.save(Path(activity_path))

    print_result(result, first_turn=user_message is None)

    page_path = save_page(result, output_dir, topic)
    conversation_path = save_conversation(result, page_path.with_suffix(".json"), topic=topic)
    console.print(f"\n[dim]Saved page to: {page_path}[/dim]")
    console.print(f"[dim]Continue with: --continue {conversation_path}[/dim]")


if __name__ == "__main__":
    main()
