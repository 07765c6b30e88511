"""Metadata extraction engine.

``MetadataExtractor.extract`` drives the whole pipeline for one URL:

normalize -> classify -> {video pipeline | primary fetch + HTML extraction}
-> fallback chain -> quality check, repeated by the retry controller under
one shared deadline.

``extract`` never raises. Even under total failure the result carries a
domain-derived title and a resolvable favicon.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Optional

from linkpreview.config import ExtractionSettings
from linkpreview.errors import InvalidUrlError
from linkpreview.metadata.html_extractor import extract_from_html, finalize_metadata
from linkpreview.models import CORE_FIELDS, PageMetadata
from linkpreview.utils.metadata_quality import is_weak_metadata
from linkpreview.utils.telemetry import ExtractionAttempt
from linkpreview.utils.url_classifier import SiteKind, classify
from linkpreview.utils.url_normalizer import default_favicon, domain_title, normalize_url

from .deadline import Deadline
from .fallbacks import fallback_strategies, needs_full_fallback
from .fetcher import BoundedFetcher
from .microblog import apply_platform_defaults
from .retry import AttemptResult, RetryController
from .strategy import Strategy, StrategyContext, StrategyKind, run_chain, run_strategy
from .video import clean_watch_page, extract_video

logger = logging.getLogger(__name__)

__all__ = [
    "ExtractionResult",
    "MetadataExtractor",
    "extract_metadata",
    "get_default_extractor",
]


@dataclass
class ExtractionResult:
    metadata: PageMetadata
    is_weak: bool
    attempt: ExtractionAttempt
    # Fields filled from the URL alone rather than from the page
    synthesized: tuple[str, ...] = ()

    def patch(self) -> PageMetadata:
        """Metadata actually found on the page, for merging into a stored record."""
        patch = self.metadata.copy()
        for name in self.synthesized:
            setattr(patch, name, None)
        return patch

    def to_dict(self, include_trace: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "url": self.attempt.target_url,
            "metadata": self.metadata.to_dict(),
            "is_weak": self.is_weak,
        }
        if include_trace:
            data["attempt"] = self.attempt.to_dict()
        return data


def ensure_minimum(metadata: PageMetadata, url: str) -> list[str]:
    """Guarantee a title and a favicon so renderers always have something.

    Returns the names of the fields that had to be synthesized.
    """
    synthesized = []
    if metadata.title is None:
        metadata.title = domain_title(url)
        synthesized.append("title")
    if metadata.favicon is None:
        metadata.favicon = default_favicon(url)
        synthesized.append("favicon")
    return synthesized


def _primary_fetch(kind: SiteKind, ctx: StrategyContext) -> Optional[PageMetadata]:
    result = ctx.fetcher.fetch(ctx.url, ctx.deadline)
    ctx.primary = result
    ctx.trace.http_status = result.status_code
    ctx.trace.effective_url = result.effective_url
    result.raise_for_status()
    if not result.is_html:
        logger.info(f"Non-HTML response ({result.content_type}) for {ctx.url}")
        return None
    page = extract_from_html(
        result.body,
        result.effective_url,
        include_default_favicon=kind is not SiteKind.MICROBLOG,
    )
    if kind is SiteKind.VIDEO:
        page = clean_watch_page(page)
    ctx.primary_metadata = page
    return page


class MetadataExtractor:
    """Best-effort preview extraction with retries, fallbacks and a deadline."""

    def __init__(
        self,
        settings: Optional[ExtractionSettings] = None,
        fetcher: Optional[BoundedFetcher] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings or ExtractionSettings.from_env()
        self.fetcher = fetcher or BoundedFetcher(self.settings)
        self.retry = RetryController.from_settings(self.settings, sleep=sleep)
        self._clock = clock

    def extract(self, url: str, deadline: Optional[Deadline] = None) -> ExtractionResult:
        deadline = deadline or Deadline.after(self.settings.total_timeout, self._clock)
        raw = url if isinstance(url, str) else str(url)

        try:
            normalized = normalize_url(raw)
        except InvalidUrlError as exc:
            logger.info(f"Invalid URL {raw[:120]!r}: {exc}")
            attempt = ExtractionAttempt(raw, deadline)
            metadata = PageMetadata()
            synthesized = ensure_minimum(metadata, raw)
            return ExtractionResult(
                metadata=metadata,
                is_weak=True,
                attempt=attempt,
                synthesized=tuple(synthesized),
            )

        attempt = ExtractionAttempt(normalized, deadline)
        try:
            outcome = self.retry.run(
                lambda attempt_number: self._attempt(normalized, attempt, deadline),
                deadline,
            )
            metadata = outcome.metadata
            synthesized = outcome.synthesized
        except Exception:
            logger.exception(f"Unexpected failure extracting {normalized}")
            metadata = PageMetadata()
            synthesized = ensure_minimum(metadata, normalized)

        is_weak = is_weak_metadata(metadata)
        logger.info(
            f"Extracted {normalized} in {attempt.attempts_used} attempt(s): "
            f"fields={sorted(metadata.to_dict())} weak={is_weak}"
        )
        return ExtractionResult(
            metadata=metadata,
            is_weak=is_weak,
            attempt=attempt,
            synthesized=tuple(synthesized),
        )

    def _attempt(
        self, url: str, trace: ExtractionAttempt, deadline: Deadline
    ) -> AttemptResult:
        trace.begin_attempt()
        ctx = StrategyContext(
            url=url, fetcher=self.fetcher, settings=self.settings, trace=trace
        )
        kind = classify(url)

        if kind is SiteKind.VIDEO:
            extract_video(ctx, deadline)
            if not is_weak_metadata(ctx.metadata):
                return self._finish(ctx)
            logger.info(f"Video pipeline left weak metadata for {url}; using generic pipeline")

        primary = Strategy(
            StrategyKind.PRIMARY_FETCH,
            partial(_primary_fetch, kind),
            timeout=self.settings.fetch_timeout,
        )
        run_strategy(primary, ctx, deadline)

        full = needs_full_fallback(ctx, ctx.primary_metadata)
        if full or ctx.metadata.missing_fields(CORE_FIELDS):
            run_chain(
                fallback_strategies(ctx, full),
                ctx,
                deadline,
                sufficient=PageMetadata.has_core_fields,
            )

        if kind is SiteKind.MICROBLOG:
            apply_platform_defaults(ctx.metadata)
        return self._finish(ctx)

    def _finish(self, ctx: StrategyContext) -> AttemptResult:
        metadata = finalize_metadata(ctx.metadata, ctx.base_url)
        synthesized = ensure_minimum(metadata, ctx.url)
        return AttemptResult(
            metadata=metadata,
            is_weak=is_weak_metadata(metadata),
            error=ctx.primary_error,
            effective_url=ctx.base_url,
            synthesized=synthesized,
        )


_default_extractor: Optional[MetadataExtractor] = None
_default_lock = threading.Lock()


def get_default_extractor() -> MetadataExtractor:
    global _default_extractor
    with _default_lock:
        if _default_extractor is None:
            _default_extractor = MetadataExtractor()
        return _default_extractor


def extract_metadata(url: str) -> PageMetadata:
    """Extract preview metadata for ``url``. Never raises."""
    return get_default_extractor().extract(url).metadata
