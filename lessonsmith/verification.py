"""Rule-based verification of generated pages and the repair prompt built from it.

verify() is pure: the same (markup, images, config) always yields the same
findings, in the same order. Findings are recomputed on every pass.
"""

import re

from lessonsmith.models import Finding, FindingType, GenerationConfig, ResolvedImage, Severity

MIN_MARKUP_LENGTH = 100
_SRC_PREVIEW_LEN = 80

_IMG_TAG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_ALT_RE = re.compile(r"(?:^|\s)alt\s*=\s*([\"'])(.*?)\1", re.IGNORECASE | re.DOTALL)
_SRC_RE = re.compile(r"(?:^|\s)src\s*=\s*([\"'])(.*?)\1", re.IGNORECASE | re.DOTALL)

_CODE_TAG_RE = re.compile(r"<code\b[^>]*>", re.IGNORECASE)
_PRE_TAG_RE = re.compile(r"<pre\b[^>]*>", re.IGNORECASE)
_CANONICAL_CODE_RE = re.compile(
    r"<pre\b[^>]*>\s*<code\b[^>]*\bclass\s*=\s*[\"'][^\"']*\blanguage-",
    re.IGNORECASE,
)
_HIGHLIGHT_ASSET_RE = re.compile(r"highlight\.js|highlightjs|hljs", re.IGNORECASE)

PLACEHOLDER_SIGNATURES: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"lorem ipsum", re.IGNORECASE), "Lorem ipsum placeholder text"),
    (re.compile(r"\[TODO\]", re.IGNORECASE), "[TODO] marker"),
    (re.compile(r"\[INSERT.*?\]", re.IGNORECASE), "[INSERT...] placeholder"),
    (re.compile(r"\[YOUR.*?HERE\]", re.IGNORECASE), "[YOUR...HERE] placeholder"),
    (re.compile(r"placeholder\s*image", re.IGNORECASE), "Placeholder image reference"),
    (re.compile(r"example\.com/image", re.IGNORECASE), "example.com placeholder URL"),
)


def _check_images_used(markup: str, resolved_images: list[ResolvedImage]) -> list[Finding]:
    findings: list[Finding] = []
    for img in resolved_images:
        if not img.success or not img.permanent_url:
            continue
        if img.permanent_url in markup:
            continue
        findings.append(Finding(
            type=FindingType.UNUSED_IMAGE,
            severity=Severity.HIGH,
            message="Image not used in HTML",
            details={
                "url": img.permanent_url,
                "placement": img.placement,
                "description": img.description or "User-provided image",
            },
        ))
    return findings


def _check_alt_text(markup: str) -> list[Finding]:
    findings: list[Finding] = []
    for tag in _IMG_TAG_RE.findall(markup):
        alt = _ALT_RE.search(tag)
        if alt and alt.group(2).strip():
            continue
        src_match = _SRC_RE.search(tag)
        src = src_match.group(2) if src_match else "unknown"
        if len(src) > _SRC_PREVIEW_LEN:
            src = src[:_SRC_PREVIEW_LEN] + "..."
        findings.append(Finding(
            type=FindingType.MISSING_ALT_TEXT,
            severity=Severity.MEDIUM,
            message="Image missing alt text",
            details={"src": src},
        ))
    return findings


def _check_code_blocks(markup: str) -> list[Finding]:
    if not (_CODE_TAG_RE.search(markup) or _PRE_TAG_RE.search(markup)):
        return []

    findings: list[Finding] = []
    if not _CANONICAL_CODE_RE.search(markup):
        findings.append(Finding(
            type=FindingType.CODE_FORMAT,
            severity=Severity.LOW,
            message='Code blocks should use <pre><code class="language-xxx"> format for syntax highlighting',
        ))
    if not _HIGHLIGHT_ASSET_RE.search(markup):
        findings.append(Finding(
            type=FindingType.MISSING_HIGHLIGHT_SUPPORT,
            severity=Severity.LOW,
            message="Code blocks present but highlight.js CSS/JS may not be included",
        ))
    return findings


def _check_placeholders(markup: str) -> list[Finding]:
    return [
        Finding(
            type=FindingType.PLACEHOLDER_CONTENT,
            severity=Severity.MEDIUM,
            message=f"Contains placeholder: {name}",
            details={"signature": name},
        )
        for pattern, name in PLACEHOLDER_SIGNATURES
        if pattern.search(markup)
    ]


def verify(
    markup: str,
    resolved_images: list[ResolvedImage] | None = None,
    config: GenerationConfig | None = None,
) -> list[Finding]:
    """Check generated markup and return findings in fixed check order.

    An empty or too-short page yields a single critical finding and nothing
    else. config is accepted so rules can depend on the requested page; none
    of the current rules do.
    """
    if not markup or len(markup.strip()) < MIN_MARKUP_LENGTH:
        return [Finding(
            type=FindingType.MISSING_HTML,
            severity=Severity.CRITICAL,
            message="No HTML content was generated or content is too short",
        )]

    findings: list[Finding] = []
    findings += _check_images_used(markup, resolved_images or [])
    findings += _check_alt_text(markup)
    findings += _check_code_blocks(markup)
    findings += _check_placeholders(markup)
    return findings


def requires_fix(findings: list[Finding]) -> bool:
    """True when any finding is critical/high or an unused image."""
    return any(
        f.severity in (Severity.CRITICAL, Severity.HIGH) or f.type == FindingType.UNUSED_IMAGE
        for f in findings
    )


_FIX_INSTRUCTIONS = """Regenerate the complete HTML with these issues fixed. Make sure to:
- Include ALL images with proper <img> tags and meaningful alt text
- Use exact URLs provided for images
- Remove any placeholder content
- Use <pre><code class="language-xxx"> format for code blocks with highlight.js"""


def build_fix_prompt(findings: list[Finding]) -> str:
    """Render findings as the user turn that asks the model for a corrected page."""
    descriptions: list[str] = []
    for i, finding in enumerate(findings, start=1):
        desc = f"{i}. {finding.message}"
        details = finding.details or {}
        if details.get("url"):
            desc += f"\n   - URL to include: {details['url']}"
        if details.get("placement"):
            desc += f"\n   - Suggested placement: {details['placement']}"
        if details.get("description"):
            desc += f"\n   - Image description: {details['description']}"
        descriptions.append(desc)

    return (
        "Please fix the following issues with the generated HTML:\n\n"
        + "\n".join(descriptions)
        + "\n\n"
        + _FIX_INSTRUCTIONS
    )


def summarize(findings: list[Finding]) -> list[str]:
    return [f"{f.severity.value}: {f.message}" for f in findings]
