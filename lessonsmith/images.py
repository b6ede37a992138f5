"""Image pipeline: resolve image requests into hosted URLs, concurrently and per-item fault tolerant."""

import asyncio
import logging
from collections.abc import Iterable

from lessonsmith import activity_log as log
from lessonsmith.activity_log import ActivityLog
from lessonsmith.models import ImageRequest, ResolvedImage
from lessonsmith.providers.base import DEFAULT_IMAGE_STYLE, ImageProvider, MediaHost

logger = logging.getLogger(__name__)


async def _resolve_one(
    index: int,
    request: ImageRequest,
    image_provider: ImageProvider | None,
    media_host: MediaHost | None,
    activity: ActivityLog,
) -> ResolvedImage:
    """Resolve a single request. Never raises; failures land in ResolvedImage.error."""
    ref = f"image-{index + 1}"
    try:
        if media_host is None:
            raise RuntimeError("Media host not configured")
        if request.kind == "url":
            if not request.source:
                raise ValueError("Image URL is empty")
            activity.record(log.INFO, f"Processing URL image {index + 1}", {"url": request.source[:50]})
            permanent_url = await media_host.host_image(request.source)
        elif request.kind == "generate":
            if not request.description:
                raise ValueError("Image description is empty")
            if image_provider is None:
                raise RuntimeError("Image generation provider not configured")
            activity.record(log.INFO, f"Processing AI image {index + 1}", {"description": request.description})
            payload = await image_provider.generate_image(
                request.description, request.style or DEFAULT_IMAGE_STYLE
            )
            permanent_url = await media_host.host_image(payload)
        else:
            raise ValueError(f"Unknown image kind: {request.kind}")
    except Exception as exc:
        activity.record(log.ERROR, f"Image {index + 1} failed", {"error": str(exc), "kind": request.kind})
        return ResolvedImage(
            ref=ref,
            permanent_url=None,
            kind=request.kind,
            placement=request.placement,
            description=request.description,
            success=False,
            error=str(exc),
        )

    logger.debug("Image %d resolved: %s", index + 1, permanent_url)
    return ResolvedImage(
        ref=ref,
        permanent_url=permanent_url,
        kind=request.kind,
        placement=request.placement,
        description=request.description,
        success=True,
    )


async def resolve_images(
    requests: Iterable[ImageRequest],
    media_host: MediaHost | None,
    image_provider: ImageProvider | None = None,
    activity: ActivityLog | None = None,
) -> list[ResolvedImage]:
    """Resolve all image requests in parallel.

    Args:
        requests: Ordered image requests from the generation config.
        media_host: Host that rehosts every image; None fails every item.
        image_provider: Generator for "generate" requests; None fails those items.
        activity: Activity log, defaults to the process-wide one.

    Returns:
        One ResolvedImage per request, in request order.

    Raises:
        TypeError: If requests is not iterable.
    """
    activity = activity or log.activity_log
    items = list(requests)
    if not items:
        return []

    activity.record(log.INFO, "Starting image processing", {"count": len(items)})

    results = await asyncio.gather(
        *(_resolve_one(i, req, image_provider, media_host, activity) for i, req in enumerate(items))
    )

    succeeded = [r for r in results if r.success]
    activity.record(log.INFO, "Image processing complete", {
        "succeeded": len(succeeded),
        "failed": len(results) - len(succeeded),
        "urls": [r.permanent_url for r in succeeded],
    })
    return list(results)


def build_image_context(resolved: list[ResolvedImage]) -> str:
    """Render the successful images as a prompt block. Empty string if none."""
    lines: list[str] = []
    for img in (r for r in resolved if r.success):
        desc = f'AI-generated: "{img.description}"' if img.kind == "generate" else "User-provided image"
        lines.append(
            f"  {len(lines) + 1}. {desc}\n"
            f"     URL: {img.permanent_url}\n"
            f"     Suggested placement: {img.placement or 'anywhere appropriate'}"
        )

    if not lines:
        return ""

    return "\n\nIMAGES AVAILABLE (use these exact URLs in your HTML):\n" + "\n".join(lines)
