"""ImageKit.io media host: rehosts remote or inline images under a durable URL."""

import asyncio
import base64
import binascii
import logging
import os
import re
import time
import uuid

import httpx
from imagekitio import ImageKit

from config.config_loader import HostingConfig
from lessonsmith import activity_log as log
from lessonsmith.activity_log import ActivityLog
from lessonsmith.providers.base import MediaHost, ProviderError, ProviderUnavailable

logger = logging.getLogger(__name__)

# Bounded width, automatic quality and format negotiation
OPTIMIZATION_TRANSFORM = "tr=w-1000,c-at_max,q-80,f-auto"

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(?:;[\w=-]+)*;base64,(?P<data>.*)$", re.DOTALL)

_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
    "image/svg+xml": "svg",
}


def is_data_url(source: str) -> bool:
    return source.startswith("data:")


def decode_data_url(source: str) -> tuple[bytes, str]:
    """Return (image bytes, mime type) for a base64 data URL.

    Raises:
        ValueError: If the data URL is malformed or carries no image bytes.
    """
    match = _DATA_URL_RE.match(source.strip())
    if not match:
        raise ValueError("Malformed data URL")
    payload = "".join(match.group("data").split())
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Invalid base64 payload: {exc}") from exc
    if not data:
        raise ValueError("Empty image payload")
    return data, match.group("mime") or "image/png"


def optimized_url(url: str) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{OPTIMIZATION_TRANSFORM}"


class ImageKitHost(MediaHost):
    """Uploads images to ImageKit and returns optimized delivery URLs."""

    def __init__(self, config: HostingConfig, activity: ActivityLog | None = None) -> None:
        self._config = config
        self._activity = activity or log.activity_log
        private_key = os.environ.get(config.private_key_env, "").strip()
        if not private_key:
            raise ProviderUnavailable(config.name, f"Missing API key: {config.private_key_env}")
        self._client = ImageKit(private_key=private_key)

    def name(self) -> str:
        return self._config.name

    async def _fetch(self, url: str) -> tuple[bytes, str]:
        async with httpx.AsyncClient(timeout=self._config.timeout_sec, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
        mime_type = response.headers.get("content-type", "image/png").split(";")[0].strip()
        return response.content, mime_type

    def _upload(self, data: bytes, file_name: str) -> str:
        result = self._client.files.upload(
            file=data,
            file_name=file_name,
            folder=self._config.folder,
            use_unique_file_name=True,
            is_private_file=False,
            tags=["instructional-page"],
        )
        url = getattr(result, "url", None)
        if not url:
            raise ProviderError(self._config.name, "Upload completed but no URL in response")
        return url

    async def host_image(self, source: str) -> str:
        inline = is_data_url(source)
        start = time.monotonic()
        log_id = self._activity.record(log.IMAGE_UPLOAD, "Upload started", {
            "type": "base64" if inline else "url",
            "source_preview": "data:image/...(base64)" if inline else source[:80],
        })
        try:
            if inline:
                data, mime_type = decode_data_url(source)
            else:
                data, mime_type = await self._fetch(source)
            file_name = f"image-{uuid.uuid4().hex[:10]}.{_EXTENSIONS.get(mime_type, 'png')}"
            url = await asyncio.wait_for(
                asyncio.to_thread(self._upload, data, file_name),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            self._activity.timed(log_id, start)
            self._activity.record(log.ERROR, "Upload timeout", {"timeout_sec": self._config.timeout_sec})
            raise ProviderError(self._config.name, f"Upload timed out after {self._config.timeout_sec}s") from exc
        except ProviderError:
            self._activity.timed(log_id, start)
            self._activity.record(log.ERROR, "Upload failed", {"error": "no URL in response"})
            raise
        except Exception as exc:
            self._activity.timed(log_id, start)
            self._activity.record(log.ERROR, "Upload failed", {
                "error": str(exc),
                "type": "base64" if inline else "url",
            })
            raise ProviderError(self._config.name, f"Upload failed: {exc}") from exc

        duration_ms = self._activity.timed(log_id, start)
        permanent_url = optimized_url(url)
        self._activity.record(log.IMAGE_UPLOAD, "Upload complete", {
            "duration": f"{duration_ms}ms",
            "permanent_url": permanent_url,
            "bytes": len(data),
        })
        return permanent_url
