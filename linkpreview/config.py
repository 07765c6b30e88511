"""Runtime configuration for the preview extraction engine.

Every tunable is read from the environment once at import time. Malformed
numeric values fall back to their defaults so a bad deployment variable can
never stop link previews from being served.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring malformed {name}={raw!r}; using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring malformed {name}={raw!r}; using {default}")
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Field caps applied before metadata is considered final
TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 300
MIN_DESCRIPTION_LENGTH = 10

# Generic icon service used when no real favicon could be discovered
ICON_PROXY_TEMPLATE = "https://www.google.com/s2/favicons?domain={host}&sz={size}"
ICON_PROXY_MARKER = "google.com/s2/favicons"

# Video platform
VIDEO_THUMBNAIL_TEMPLATE = "https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"
VIDEO_FAVICON_URL = "https://www.youtube.com/s/desktop/12d6b690/img/favicon_32x32.png"
VIDEO_OEMBED_URL = "https://www.youtube.com/oembed"
VIDEO_EMBED_INFO_URL = "https://noembed.com/embed"

# Micro-blogging platform
MICROBLOG_FAVICON_URL = "https://abs.twimg.com/favicons/twitter.ico"

DATABASE_URL = os.getenv("DATABASE_URL") or None


@dataclass(frozen=True)
class ExtractionSettings:
    """Timeouts, retry policy and optional services for one engine instance."""

    fetch_timeout: float = 10.0
    fallback_timeout: float = 6.0
    total_timeout: float = 25.0
    max_attempts: int = 3
    backoff_base: float = 0.5
    backoff_max: float = 4.0
    max_body_bytes: int = 2_000_000
    crawler_max_age_hours: float = 6.0
    human_max_age_hours: float = 12.0
    serve_timeout: float = 8.0
    reader_proxy_url: str | None = "https://r.jina.ai/"
    enrichment_api_url: str = "https://pro.microlink.io/"
    enrichment_api_key: str | None = field(default=None, repr=False)
    use_cloudscraper: bool = True

    @classmethod
    def from_env(cls) -> "ExtractionSettings":
        reader_proxy = os.getenv("READER_PROXY_URL", "https://r.jina.ai/").strip()
        return cls(
            fetch_timeout=_env_float("PREVIEW_FETCH_TIMEOUT", 10.0),
            fallback_timeout=_env_float("PREVIEW_FALLBACK_TIMEOUT", 6.0),
            total_timeout=_env_float("PREVIEW_TOTAL_TIMEOUT", 25.0),
            max_attempts=max(1, _env_int("PREVIEW_MAX_ATTEMPTS", 3)),
            backoff_base=_env_float("PREVIEW_BACKOFF_BASE", 0.5),
            backoff_max=_env_float("PREVIEW_BACKOFF_MAX", 4.0),
            max_body_bytes=_env_int("PREVIEW_MAX_BODY_BYTES", 2_000_000),
            crawler_max_age_hours=_env_float("PREVIEW_CRAWLER_MAX_AGE_HOURS", 6.0),
            human_max_age_hours=_env_float("PREVIEW_HUMAN_MAX_AGE_HOURS", 12.0),
            serve_timeout=_env_float("PREVIEW_SERVE_TIMEOUT", 8.0),
            reader_proxy_url=reader_proxy or None,
            enrichment_api_url=os.getenv(
                "MICROLINK_API_URL", "https://pro.microlink.io/"
            ),
            enrichment_api_key=os.getenv("MICROLINK_API_KEY") or None,
            use_cloudscraper=_env_flag("PREVIEW_USE_CLOUDSCRAPER", True),
        )
