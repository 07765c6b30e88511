"""Host-based routing of target URLs to a specialized extractor.

Classification is a pure function of the hostname: no network access, no
database lookups.
"""

from __future__ import annotations

import re
from enum import Enum
from urllib.parse import urlparse

VIDEO_DOMAINS = ("youtube.com", "youtube-nocookie.com")
VIDEO_SHORT_LINK_HOST = "youtu.be"
MICROBLOG_DOMAINS = ("twitter.com", "x.com")

# Known watch-link shapes, in priority order. Each captures the 11-char id.
VIDEO_ID_PATTERNS = [
    re.compile(r"youtube(?:-nocookie)?\.com/watch\?(?:[^#\s]*&)?v=([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"),
    re.compile(r"youtube(?:-nocookie)?\.com/embed/([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"),
    re.compile(r"youtu\.be/([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"),
    re.compile(r"youtube(?:-nocookie)?\.com/v/([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"),
    re.compile(r"youtube\.com/shorts/([A-Za-z0-9_-]{11})(?![A-Za-z0-9_-])"),
]


class SiteKind(Enum):
    """Extraction pipelines a URL can be routed to."""

    GENERIC = "generic"
    VIDEO = "video"
    MICROBLOG = "microblog"


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def classify(url: str) -> SiteKind:
    """Route a URL to its extraction pipeline by hostname suffix.

    Examples:
        >>> classify("https://www.youtube.com/watch?v=dQw4w9WgXcQ")
        <SiteKind.VIDEO: 'video'>
        >>> classify("https://youtu.be/dQw4w9WgXcQ")
        <SiteKind.VIDEO: 'video'>
        >>> classify("https://x.com/someone/status/1")
        <SiteKind.MICROBLOG: 'microblog'>
        >>> classify("https://example.com/")
        <SiteKind.GENERIC: 'generic'>
    """
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return SiteKind.GENERIC

    if not host:
        return SiteKind.GENERIC
    if host == VIDEO_SHORT_LINK_HOST or any(
        _host_matches(host, domain) for domain in VIDEO_DOMAINS
    ):
        return SiteKind.VIDEO
    if any(_host_matches(host, domain) for domain in MICROBLOG_DOMAINS):
        return SiteKind.MICROBLOG
    return SiteKind.GENERIC


def extract_video_id(url: str) -> str | None:
    """Return the canonical 11-character video id carried by ``url``."""
    if not url:
        return None
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None
