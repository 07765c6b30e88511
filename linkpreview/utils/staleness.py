"""Decide whether a stored record must be re-extracted before serving."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from linkpreview.config import ExtractionSettings
from linkpreview.models import LinkRecord
from linkpreview.utils.metadata_quality import is_weak_metadata

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshContext:
    """Who is asking: a forced manual refresh and/or a social-preview bot."""

    forced: bool = False
    is_crawler: bool = False


def freshness_window(context: RefreshContext, settings: ExtractionSettings) -> timedelta:
    hours = (
        settings.crawler_max_age_hours
        if context.is_crawler
        else settings.human_max_age_hours
    )
    return timedelta(hours=hours)


def _aware(value: datetime) -> datetime:
    # Naive timestamps from the database are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def should_refresh(
    record: Optional[LinkRecord],
    now: datetime,
    context: Optional[RefreshContext] = None,
    settings: Optional[ExtractionSettings] = None,
) -> bool:
    """True if forced, if the record is weak, or if it is older than its window.

    An absent record, or one that was never stamped, always needs a refresh.
    """
    context = context or RefreshContext()
    settings = settings or ExtractionSettings()

    if context.forced:
        return True
    if record is None:
        return True
    if is_weak_metadata(record):
        return True
    if record.last_updated_at is None:
        return True

    age = _aware(now) - _aware(record.last_updated_at)
    stale = age > freshness_window(context, settings)
    if stale:
        logger.debug(f"Record {record.short_code} is stale (age {age})")
    return stale
