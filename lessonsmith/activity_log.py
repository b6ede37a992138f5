"""Fire-and-forget activity log for API calls, image work and verification passes.

Entries are kept newest-first in a bounded in-memory buffer and mirrored to
the stdlib logger. Nothing here may raise into a caller: a broken log must
never fail a generation request.
"""

import json
import logging
import time
import uuid
from collections import deque
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_ENTRIES = 200

API_CALL = "api_call"
IMAGE_GEN = "image_gen"
IMAGE_UPLOAD = "image_upload"
VERIFICATION = "verification"
ERROR = "error"
INFO = "info"

CATEGORIES = (API_CALL, IMAGE_GEN, IMAGE_UPLOAD, VERIFICATION, ERROR, INFO)


class ActivityLog:
    """Append-only activity buffer shared by every request in the process."""

    def __init__(self, max_entries: int = MAX_ENTRIES) -> None:
        self._entries: deque[dict] = deque(maxlen=max_entries)

    def record(self, category: str, action: str, details: dict | None = None) -> str:
        """Append an entry and return its correlation id."""
        entry_id = uuid.uuid4().hex[:12]
        try:
            entry = {
                "id": entry_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "category": category,
                "action": action,
                "details": dict(details) if details else {},
                "duration_ms": None,
            }
            self._entries.appendleft(entry)
            level = logging.WARNING if category == ERROR else logging.INFO
            if entry["details"]:
                logger.log(level, "[%s] %s %s", category, action, entry["details"])
            else:
                logger.log(level, "[%s] %s", category, action)
        except Exception as exc:
            logger.debug("Activity log record failed: %s", exc)
        return entry_id

    def record_duration(self, correlation_id: str, elapsed_ms: int) -> None:
        try:
            for entry in self._entries:
                if entry["id"] == correlation_id:
                    entry["duration_ms"] = elapsed_ms
                    return
        except Exception as exc:
            logger.debug("Activity log duration update failed: %s", exc)

    def timed(self, correlation_id: str, start: float) -> int:
        """Record the elapsed time since a monotonic start and return it in ms."""
        elapsed_ms = int((time.monotonic() - start) * 1000)
        self.record_duration(correlation_id, elapsed_ms)
        return elapsed_ms

    def recent(self, limit: int = 50) -> list[dict]:
        return list(self._entries)[:limit]

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict:
        """Per-category counts and token usage over the retained entries."""
        counts = {category: 0 for category in CATEGORIES}
        tokens = 0
        for entry in self._entries:
            counts[entry["category"]] = counts.get(entry["category"], 0) + 1
            usage = entry["details"].get("tokens")
            if isinstance(usage, dict):
                tokens += (usage.get("input") or 0) + (usage.get("output") or 0)
        return {"total_entries": len(self._entries), "by_category": counts, "tokens_used": tokens}

    def save(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(list(self._entries), indent=2, default=str), encoding="utf-8")
        return path


activity_log = ActivityLog()
