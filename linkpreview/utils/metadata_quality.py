"""Pure classifier deciding whether stored preview metadata is weak.

A record is weak when ANY of these holds:
- the title is absent or looks like a placeholder
- the description is absent, too short, or boilerplate
- the favicon is the generic icon-proxy fallback (no real icon was found)
- title, description and image are all absent

No network access, no side effects.
"""

from __future__ import annotations

import re
from typing import Any, Optional, Union

from linkpreview.config import MIN_DESCRIPTION_LENGTH
from linkpreview.models import LinkRecord, PageMetadata
from linkpreview.utils.url_normalizer import is_icon_proxy_url

MIN_TITLE_LENGTH = 3

PLACEHOLDER_TITLE_PATTERNS = [
    re.compile(r"^page from \S+$", re.IGNORECASE),
    re.compile(r"^(website|web page|webpage|shortened link|short link)$", re.IGNORECASE),
    re.compile(r"^(untitled|untitled document|no title|home|home page|homepage)$", re.IGNORECASE),
    re.compile(r"^(youtube|x|twitter|loading\.*|just a moment\.*)$", re.IGNORECASE),
    re.compile(r"^(403 forbidden|404 not found|access denied|attention required!.*)$", re.IGNORECASE),
]

BOILERPLATE_DESCRIPTION_PATTERNS = [
    re.compile(r"enjoy the videos and music", re.IGNORECASE),
    re.compile(r"upload original content", re.IGNORECASE),
    re.compile(r"^\s*click (here|to view)\b", re.IGNORECASE),
    re.compile(r"^\s*check out this\b", re.IGNORECASE),
    re.compile(r"like (and|&) subscribe", re.IGNORECASE),
    re.compile(r"^\s*(no description|description not available)", re.IGNORECASE),
    re.compile(r"^[\W_]+$"),
]

MetadataLike = Union[PageMetadata, LinkRecord, dict, None]


def _as_metadata(record: MetadataLike) -> Optional[PageMetadata]:
    if record is None:
        return None
    if isinstance(record, LinkRecord):
        return record.metadata
    if isinstance(record, PageMetadata):
        return record
    if isinstance(record, dict):
        return PageMetadata.from_dict(record)
    raise TypeError(f"Unsupported metadata record type: {type(record).__name__}")


def is_placeholder_title(title: Optional[str]) -> bool:
    if not title:
        return True
    text = title.strip()
    if len(text) < MIN_TITLE_LENGTH:
        return True
    return any(pattern.search(text) for pattern in PLACEHOLDER_TITLE_PATTERNS)


def is_boilerplate_description(description: Optional[str]) -> bool:
    if not description:
        return True
    text = description.strip()
    if len(text) < MIN_DESCRIPTION_LENGTH:
        return True
    return any(pattern.search(text) for pattern in BOILERPLATE_DESCRIPTION_PATTERNS)


def weakness_reasons(record: MetadataLike) -> list[str]:
    """List every signal that makes ``record`` weak; empty means acceptable."""
    metadata = _as_metadata(record)
    if metadata is None:
        return ["missing_record"]

    reasons: list[str] = []
    if not metadata.title:
        reasons.append("missing_title")
    elif is_placeholder_title(metadata.title):
        reasons.append("placeholder_title")

    if not metadata.description:
        reasons.append("missing_description")
    elif is_boilerplate_description(metadata.description):
        reasons.append("boilerplate_description")

    if is_icon_proxy_url(metadata.favicon):
        reasons.append("icon_proxy_favicon")

    if not metadata.has_any_core_field():
        reasons.append("no_core_fields")
    return reasons


def is_weak_metadata(record: MetadataLike) -> bool:
    return bool(weakness_reasons(record))


def describe(record: Any) -> dict[str, Any]:
    reasons = weakness_reasons(record)
    return {"is_weak": bool(reasons), "reasons": reasons}
