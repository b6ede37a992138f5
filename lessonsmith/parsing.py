"""Split a raw model reply into the chat message and the fenced HTML block."""

import re

from lessonsmith.models import ParsedResponse

_FENCE_OPEN_RE = re.compile(r"```[ \t]*html\b[^\n]*\r?\n", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\r?\n?```[ \t]*(?=\r?\n|$)")


def parse_response(raw: str | None) -> ParsedResponse:
    """Extract message and markup from model output.

    The markup is the body of the first ```html fence, or "" when the fence is
    missing or never closed. The message is everything before the fence. This
    never raises; a missing block surfaces later as a missing_html finding.
    """
    if not raw:
        return ParsedResponse(message="", markup="")

    opening = _FENCE_OPEN_RE.search(raw)
    if opening is None:
        return ParsedResponse(message=raw.strip(), markup="")

    message = raw[: opening.start()].strip()
    closing = _FENCE_CLOSE_RE.search(raw, opening.end())
    if closing is None:
        return ParsedResponse(message=message, markup="")

    return ParsedResponse(message=message, markup=raw[opening.end(): closing.start()])
