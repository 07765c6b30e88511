"""Serve stored previews, refreshing them when the staleness policy says so.

Serving never waits longer than ``serve_timeout``: the refresh runs in a
worker thread under its own deadline and, if it is not done in time, the
cached record is served instead.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from datetime import datetime
from typing import Any, Callable, Optional

from linkpreview.config import (
    MICROBLOG_FAVICON_URL,
    VIDEO_FAVICON_URL,
    ExtractionSettings,
)
from linkpreview.crawler import MetadataExtractor
from linkpreview.crawler.deadline import Deadline
from linkpreview.crawler.video import video_thumbnail_url
from linkpreview.models import LinkRecord
from linkpreview.models.database import utcnow
from linkpreview.utils.metadata_quality import BOILERPLATE_DESCRIPTION_PATTERNS
from linkpreview.utils.staleness import RefreshContext, should_refresh
from linkpreview.utils.url_classifier import SiteKind, classify, extract_video_id
from linkpreview.utils.url_normalizer import (
    domain_title,
    hostname_of,
    icon_proxy_url,
    is_icon_proxy_url,
)

from .link_store import LinkStore

logger = logging.getLogger(__name__)

CARD_IMAGE_ICON_SIZE = 512
MICROBLOG_DEFAULT_TITLE = "Post on X (Twitter)"


class PreviewService:
    """Read-through preview cache in front of the extraction engine."""

    def __init__(
        self,
        store: LinkStore,
        extractor: Optional[MetadataExtractor] = None,
        settings: Optional[ExtractionSettings] = None,
        clock: Callable[[], datetime] = utcnow,
        max_workers: int = 4,
    ):
        self.store = store
        self.settings = settings or (
            extractor.settings if extractor else ExtractionSettings.from_env()
        )
        self.extractor = extractor or MetadataExtractor(self.settings)
        self._clock = clock
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="preview-refresh"
        )

    def get_preview(
        self, short_code: str, *, is_crawler: bool = False, force: bool = False
    ) -> Optional[LinkRecord]:
        """Return the record for ``short_code``, refreshed first if needed.

        Returns None for an unknown code. A refresh that fails or misses the
        serve timeout leaves the cached record in place.
        """
        record = self.store.get(short_code)
        if record is None:
            return None

        context = RefreshContext(forced=force, is_crawler=is_crawler)
        if not should_refresh(record, self._clock(), context, self.settings):
            return record

        logger.info(
            f"Refreshing {short_code} before serving "
            f"({'crawler' if is_crawler else 'browser'}, forced={force})"
        )
        return self._refresh_within(record, self.settings.serve_timeout) or record

    def refresh(self, short_code: str) -> Optional[LinkRecord]:
        """Forced refresh with the full extraction budget."""
        record = self.store.get(short_code)
        if record is None:
            return None
        result = self.extractor.extract(record.original_url)
        return self.store.put(short_code, result.patch()) or record

    def preview_for_url(
        self, url: str, *, is_crawler: bool = False, force: bool = False
    ) -> Optional[LinkRecord]:
        short_code = self.store.lookup_by_url(url)
        if short_code is None:
            return None
        return self.get_preview(short_code, is_crawler=is_crawler, force=force)

    def _refresh_within(self, record: LinkRecord, timeout: float) -> Optional[LinkRecord]:
        deadline = Deadline.after(timeout)
        future = self._executor.submit(
            self.extractor.extract, record.original_url, deadline
        )
        try:
            result = future.result(timeout=timeout)
        except FuturesTimeoutError:
            # The worker stops on its own once the deadline passes
            future.cancel()
            logger.warning(
                f"Refresh of {record.short_code} missed the {timeout:.1f}s serve "
                "timeout; serving cached metadata"
            )
            return None
        except Exception as e:
            logger.warning(f"Refresh of {record.short_code} failed: {e}")
            return None
        return self.store.put(record.short_code, result.patch())

    def social_card(self, record: LinkRecord) -> dict[str, Any]:
        """Presentation-ready preview fields for a social-media crawler."""
        url = record.original_url
        metadata = record.metadata
        title = metadata.title
        description = metadata.description
        image = metadata.image
        favicon = metadata.favicon
        host = hostname_of(url) or ""
        kind = classify(url)

        if not image or is_icon_proxy_url(image):
            video_id = extract_video_id(url) if kind is SiteKind.VIDEO else None
            if video_id:
                image = video_thumbnail_url(video_id)
            elif favicon and not is_icon_proxy_url(favicon):
                image = favicon
            else:
                image = icon_proxy_url(host, CARD_IMAGE_ICON_SIZE)

        if kind is SiteKind.VIDEO:
            if not description or any(
                pattern.search(description) for pattern in BOILERPLATE_DESCRIPTION_PATTERNS
            ):
                description = (
                    f"Watch: {title}" if title else "Watch this video on YouTube"
                )
            if not favicon or is_icon_proxy_url(favicon):
                favicon = VIDEO_FAVICON_URL
        elif kind is SiteKind.MICROBLOG:
            if not favicon or is_icon_proxy_url(favicon):
                favicon = MICROBLOG_FAVICON_URL
            if not title or title == "Website":
                title = MICROBLOG_DEFAULT_TITLE

        return {
            "short_code": record.short_code,
            "url": url,
            "title": title or domain_title(url),
            "description": description,
            "image": image,
            "favicon": favicon or icon_proxy_url(host),
            "card": "summary_large_image" if image else "summary",
        }

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
