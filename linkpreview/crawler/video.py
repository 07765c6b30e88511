"""Video-platform pipeline: oEmbed, then embed-info, then the watch page.

Each step only runs while no title has been found. The thumbnail is
templated from the video id, so an image is always available without a
network call.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from linkpreview.config import (
    VIDEO_EMBED_INFO_URL,
    VIDEO_FAVICON_URL,
    VIDEO_OEMBED_URL,
    VIDEO_THUMBNAIL_TEMPLATE,
)
from linkpreview.metadata.html_extractor import clean_text, extract_from_html
from linkpreview.models import PageMetadata
from linkpreview.utils.metadata_quality import BOILERPLATE_DESCRIPTION_PATTERNS
from linkpreview.utils.url_classifier import extract_video_id

from .deadline import Deadline
from .strategy import Strategy, StrategyContext, StrategyKind, run_chain

logger = logging.getLogger(__name__)


def video_thumbnail_url(video_id: str) -> str:
    return VIDEO_THUMBNAIL_TEMPLATE.format(video_id=video_id)


def watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def strip_boilerplate(description: Optional[str]) -> Optional[str]:
    """Drop the platform's generic onboarding copy; keep real descriptions."""
    text = clean_text(description)
    if not text:
        return None
    if any(pattern.search(text) for pattern in BOILERPLATE_DESCRIPTION_PATTERNS):
        return None
    return text


def _from_embed_payload(ctx: StrategyContext, payload: Any) -> Optional[PageMetadata]:
    if not isinstance(payload, dict) or payload.get("error"):
        return None
    author = clean_text(payload.get("author_name"))
    if author and not ctx.author:
        ctx.author = author
    # The templated max-resolution thumbnail is used instead of the payload's
    return PageMetadata(title=clean_text(payload.get("title")))


def _oembed(ctx: StrategyContext) -> Optional[PageMetadata]:
    payload = ctx.fetcher.fetch_json(
        VIDEO_OEMBED_URL,
        ctx.deadline,
        params={"url": watch_url(ctx.video_id), "format": "json"},
    )
    return _from_embed_payload(ctx, payload)


def _embed_info(ctx: StrategyContext) -> Optional[PageMetadata]:
    payload = ctx.fetcher.fetch_json(
        VIDEO_EMBED_INFO_URL,
        ctx.deadline,
        params={"url": watch_url(ctx.video_id)},
    )
    return _from_embed_payload(ctx, payload)


def clean_watch_page(page: PageMetadata) -> PageMetadata:
    """Strip the platform's title suffix and onboarding copy from a watch page."""
    page.description = strip_boilerplate(page.description)
    if page.title and page.title.endswith(" - YouTube"):
        page.title = page.title[: -len(" - YouTube")].strip() or None
    return page


def _watch_page(ctx: StrategyContext) -> Optional[PageMetadata]:
    result = ctx.fetcher.fetch(watch_url(ctx.video_id), ctx.deadline)
    result.raise_for_status()
    if not result.is_html:
        return None
    page = extract_from_html(
        result.body, result.effective_url, include_default_favicon=False
    )
    return clean_watch_page(page)


def video_strategies(ctx: StrategyContext) -> list[Strategy]:
    timeout = ctx.settings.fallback_timeout
    return [
        Strategy(StrategyKind.VIDEO_OEMBED, _oembed, timeout=timeout),
        Strategy(StrategyKind.VIDEO_EMBED_INFO, _embed_info, timeout=timeout),
        Strategy(
            StrategyKind.VIDEO_PAGE, _watch_page, timeout=ctx.settings.fetch_timeout
        ),
    ]


def extract_video(ctx: StrategyContext, deadline: Deadline) -> PageMetadata:
    """Fill ``ctx.metadata`` from the video platform and return it.

    The caller falls back to the generic pipeline when the result is weak.
    """
    ctx.video_id = ctx.video_id or extract_video_id(ctx.url)
    if not ctx.video_id:
        logger.info(f"No video id in {ctx.url}; using generic pipeline")
        return ctx.metadata

    # Known without a network call, so it also wins over any scraped og:image
    ctx.metadata.merge_missing(PageMetadata(image=video_thumbnail_url(ctx.video_id)))

    run_chain(
        video_strategies(ctx),
        ctx,
        deadline,
        sufficient=lambda metadata: metadata.title is not None,
    )

    metadata = ctx.metadata
    if metadata.description is None and ctx.author:
        metadata.description = f"By {ctx.author}"
    metadata.merge_missing(PageMetadata(favicon=VIDEO_FAVICON_URL))
    return metadata
