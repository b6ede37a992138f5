"""Rich console output, HTML export and conversation files for generation results."""

import json
import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from lessonsmith.models import ConversationMessage, Finding, GenerationResult, ResolvedImage, Severity

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_SEVERITY_STYLES = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "dim",
}


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len] or "page"


def print_images(images: list[ResolvedImage]) -> None:
    if not images:
        return
    table = Table(title="Images", show_lines=False)
    table.add_column("Ref")
    table.add_column("Kind")
    table.add_column("Status")
    table.add_column("URL / error", overflow="fold")
    for img in images:
        status = "[green]OK[/green]" if img.success else "[red]FAIL[/red]"
        table.add_row(img.ref, img.kind, status, img.permanent_url if img.success else (img.error or ""))
    console.print(table)


def print_findings(findings: list[Finding]) -> None:
    if not findings:
        console.print("[green]Verification passed[/green]")
        return
    table = Table(title="Residual findings")
    table.add_column("Severity")
    table.add_column("Type")
    table.add_column("Message", overflow="fold")
    for finding in findings:
        style = _SEVERITY_STYLES.get(finding.severity, "")
        table.add_row(Text(finding.severity.value, style=style), finding.type.value, finding.message)
    console.print(table)


def print_result(result: GenerationResult, first_turn: bool = True) -> None:
    """Print the assistant message, image table and verification summary."""
    console.print(Rule("[bold cyan]Generated page[/bold cyan]"))
    console.print(
        Text(
            f"Model calls: {result.generation_calls} | "
            f"Fix attempts: {result.fix_attempts} | "
            f"HTML: {len(result.markup):,} chars",
            style="dim",
        )
    )
    if result.message:
        console.print(Markdown(result.message))
    print_images(result.resolved_images)
    if first_turn:
        print_findings(result.findings)


def save_page(result: GenerationResult, output_dir: Path, topic: str, slug_override: str | None = None) -> Path:
    """Export the generated HTML to output_dir and return the file path."""
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(topic)
    filepath = output_dir / f"{timestamp}_{slug}.html"

    filepath.write_text(result.markup, encoding="utf-8")
    logger.info("Page saved to: %s", filepath)
    return filepath


def save_conversation(result: GenerationResult, path: Path, topic: str | None = None) -> Path:
    """Write the caller-visible conversation so a later run can continue it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "topic": topic,
        "conversation": [{"role": m.role, "content": m.content} for m in result.conversation],
    }
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def load_conversation(path: Path) -> tuple[list[ConversationMessage], str | None]:
    """Read a conversation file written by save_conversation."""
    data = json.loads(path.read_text(encoding="utf-8"))
    messages = [ConversationMessage(role=m["role"], content=m["content"]) for m in data.get("conversation", [])]
    return messages, data.get("topic")
