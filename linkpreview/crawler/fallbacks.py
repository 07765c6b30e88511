"""Fallback chain run after the primary fetch comes back short.

Order: reader proxy, AMP mirror, thumbnail heuristic, enrichment API. Each
step runs under its own short deadline and only fills fields that are
still missing.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from linkpreview.errors import ServiceUnavailableError
from linkpreview.metadata.html_extractor import (
    extract_from_html,
    extract_from_reader_text,
    find_amp_url,
)
from linkpreview.models import PageMetadata
from linkpreview.utils.url_classifier import extract_video_id

from .origin_proxy import READER_PROXY_HEADERS, reader_proxy_url
from .strategy import Strategy, StrategyContext, StrategyKind
from .utils import mask_credentials
from .video import video_thumbnail_url

logger = logging.getLogger(__name__)

_EMBEDDED_VIDEO_RE = re.compile(
    r"youtube(?:-nocookie)?\.com/embed/([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"
)


def needs_full_fallback(ctx: StrategyContext, extracted: Optional[PageMetadata]) -> bool:
    """Proxy and enrichment only run when the primary path really failed.

    That is: the fetch failed or timed out, the response was not HTML, or
    extraction yielded no title, description and image at all.
    """
    if ctx.primary is None or ctx.primary_error is not None:
        return True
    if not ctx.primary.is_html:
        return True
    return extracted is None or not extracted.has_any_core_field()


def _reader_proxy(ctx: StrategyContext) -> Optional[PageMetadata]:
    proxied = reader_proxy_url(ctx.settings.reader_proxy_url, ctx.url)
    if proxied is None:
        return None
    result = ctx.fetcher.fetch(proxied, ctx.deadline, headers=READER_PROXY_HEADERS)
    result.raise_for_status()
    # Resolve against the target, never against the proxy host
    return extract_from_reader_text(result.body, ctx.base_url)


def _amp_mirror(ctx: StrategyContext) -> Optional[PageMetadata]:
    if ctx.primary is None or not ctx.primary.is_html:
        return None
    amp_url = find_amp_url(ctx.primary.body, ctx.primary.effective_url)
    if not amp_url or amp_url == ctx.primary.effective_url:
        return None
    logger.debug(f"Following AMP mirror {amp_url}")
    result = ctx.fetcher.fetch(amp_url, ctx.deadline)
    result.raise_for_status()
    if not result.is_html:
        return None
    return extract_from_html(
        result.body, result.effective_url, include_default_favicon=False
    )


def _thumbnail_heuristic(ctx: StrategyContext) -> Optional[PageMetadata]:
    video_id = ctx.video_id or extract_video_id(ctx.url)
    if not video_id and ctx.primary is not None:
        video_id = extract_video_id(ctx.primary.effective_url)
    if not video_id and ctx.primary is not None and ctx.primary.is_html:
        match = _EMBEDDED_VIDEO_RE.search(ctx.primary.body)
        if match:
            video_id = match.group(1)
    if not video_id:
        return None
    return PageMetadata(image=video_thumbnail_url(video_id))


def _asset_url(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("url")
    return value if isinstance(value, str) and value.strip() else None


def _enrichment(ctx: StrategyContext) -> Optional[PageMetadata]:
    settings = ctx.settings
    masked = mask_credentials(settings.enrichment_api_url)
    try:
        payload = ctx.fetcher.fetch_json(
            settings.enrichment_api_url,
            ctx.deadline,
            params={"url": ctx.url},
            headers={"x-api-key": settings.enrichment_api_key or ""},
        )
    except ServiceUnavailableError:
        raise
    except Exception as exc:
        raise ServiceUnavailableError(
            f"Enrichment API {masked} failed: {type(exc).__name__}"
        ) from exc

    if not isinstance(payload, dict) or payload.get("status") != "success":
        raise ServiceUnavailableError(f"Enrichment API {masked} returned no data")
    data = payload.get("data") or {}
    if not isinstance(data, dict):
        return None
    return PageMetadata(
        title=data.get("title") if isinstance(data.get("title"), str) else None,
        description=(
            data.get("description") if isinstance(data.get("description"), str) else None
        ),
        image=_asset_url(data.get("image")),
        favicon=_asset_url(data.get("logo")),
    )


def _enrichment_applies(ctx: StrategyContext) -> bool:
    return bool(ctx.settings.enrichment_api_key) and not ctx.metadata.has_any_core_field()


def fallback_strategies(ctx: StrategyContext, full: bool) -> list[Strategy]:
    """The ordered chain; ``full`` adds the proxy and enrichment steps."""
    timeout = ctx.settings.fallback_timeout
    chain = [
        Strategy(StrategyKind.AMP_MIRROR, _amp_mirror, timeout=timeout),
        Strategy(StrategyKind.THUMBNAIL, _thumbnail_heuristic),
    ]
    if not full:
        return chain
    return (
        [Strategy(StrategyKind.READER_PROXY, _reader_proxy, timeout=timeout)]
        + chain
        + [
            Strategy(
                StrategyKind.ENRICHMENT,
                _enrichment,
                timeout=timeout,
                applies=_enrichment_applies,
                optional_service=True,
            )
        ]
    )
