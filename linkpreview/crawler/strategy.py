"""Ordered extraction strategies as tagged values.

A strategy is a ``Strategy`` record (kind, callable, optional per-step cap
and gate), not a subclass. ``run_chain`` tries strategies one at a time,
merges whatever each one finds into the fields still missing, and stops as
soon as the caller's sufficiency test passes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from linkpreview.config import ExtractionSettings
from linkpreview.errors import ExtractionError, FetchTimeoutError, ServiceUnavailableError
from linkpreview.models import PageMetadata
from linkpreview.utils.telemetry import ExtractionAttempt

from .deadline import Deadline
from .fetcher import BoundedFetcher, FetchResult

logger = logging.getLogger(__name__)


class StrategyKind(Enum):
    PRIMARY_FETCH = "primary_fetch"
    VIDEO_OEMBED = "video_oembed"
    VIDEO_EMBED_INFO = "video_embed_info"
    VIDEO_PAGE = "video_page"
    READER_PROXY = "reader_proxy"
    AMP_MIRROR = "amp_mirror"
    THUMBNAIL = "thumbnail_heuristic"
    ENRICHMENT = "enrichment_api"


@dataclass
class StrategyContext:
    """Per-call state shared by the strategies of one extraction attempt."""

    url: str
    fetcher: BoundedFetcher
    settings: ExtractionSettings
    trace: ExtractionAttempt
    metadata: PageMetadata = field(default_factory=PageMetadata)
    deadline: Optional[Deadline] = None
    primary: Optional[FetchResult] = None
    primary_error: Optional[ExtractionError] = None
    primary_metadata: Optional[PageMetadata] = None
    video_id: Optional[str] = None
    author: Optional[str] = None

    @property
    def base_url(self) -> str:
        if self.primary is not None:
            return self.primary.effective_url
        return self.url


StrategyFn = Callable[[StrategyContext], Optional[PageMetadata]]


@dataclass(frozen=True)
class Strategy:
    kind: StrategyKind
    attempt: StrategyFn
    timeout: Optional[float] = None
    applies: Optional[Callable[[StrategyContext], bool]] = None
    # Optional collaborators log their failures louder and never raise
    optional_service: bool = False

    @property
    def name(self) -> str:
        return self.kind.value


def run_strategy(strategy: Strategy, ctx: StrategyContext, deadline: Deadline) -> list[str]:
    """Run one strategy under its own deadline; return the fields it filled.

    Errors stay local: the strategy is recorded as failed and its fields
    stay absent.
    """
    ctx.deadline = deadline.child(strategy.timeout)
    outcome = ctx.trace.start_strategy(strategy.name)
    logger.info(f"Strategy {strategy.name} starting for {ctx.url}")

    try:
        if ctx.deadline.expired():
            raise FetchTimeoutError("no time left for strategy")
        found = strategy.attempt(ctx)
    except ExtractionError as exc:
        error = f"{type(exc).__name__}: {exc}"
        ctx.trace.end_strategy(outcome, success=False, error=error)
        if strategy.optional_service or isinstance(exc, ServiceUnavailableError):
            logger.warning(f"Strategy {strategy.name} failed for {ctx.url}: {error}")
        else:
            logger.info(f"Strategy {strategy.name} failed for {ctx.url}: {error}")
        if strategy.kind is StrategyKind.PRIMARY_FETCH:
            ctx.primary_error = exc
        return []
    except Exception as exc:
        # Malformed third-party payloads must not escape the engine
        error = f"{type(exc).__name__}: {str(exc)[:200]}"
        ctx.trace.end_strategy(outcome, success=False, error=error)
        logger.warning(f"Strategy {strategy.name} crashed for {ctx.url}: {error}")
        return []

    if found is None:
        ctx.trace.end_strategy(outcome, success=False, error="no metadata")
        logger.info(f"Strategy {strategy.name} found nothing for {ctx.url}")
        return []

    filled = ctx.metadata.merge_missing(found)
    ctx.trace.end_strategy(outcome, success=bool(filled), metadata=found)
    logger.info(f"Strategy {strategy.name} filled {filled or 'nothing new'} for {ctx.url}")
    return filled


def run_chain(
    strategies: list[Strategy],
    ctx: StrategyContext,
    deadline: Deadline,
    sufficient: Callable[[PageMetadata], bool],
) -> PageMetadata:
    """Try ``strategies`` in order until ``sufficient`` holds or time runs out."""
    for strategy in strategies:
        if sufficient(ctx.metadata):
            break
        if deadline.expired():
            logger.info(f"Deadline reached before {strategy.name} for {ctx.url}")
            break
        if strategy.applies is not None and not strategy.applies(ctx):
            continue
        run_strategy(strategy, ctx, deadline)
    return ctx.metadata
