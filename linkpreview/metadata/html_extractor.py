"""Tag-based preview extraction from a fetched HTML document.

Every field is taken from the first source that yields a value, in the
priority order below. JSON-LD only fills what the tag pass left empty, and
every image or favicon reference is resolved against the origin of the
effective (post-redirect) URL.
"""

from __future__ import annotations

import html
import logging
import re
from typing import Optional, Union

from bs4 import BeautifulSoup, Tag

from linkpreview.config import DESCRIPTION_MAX_LENGTH, TITLE_MAX_LENGTH
from linkpreview.models import PageMetadata
from linkpreview.utils.url_normalizer import origin_of, resolve_url

from .structured_data import extract_from_jsonld

logger = logging.getLogger(__name__)

TITLE_META_KEYS = ("og:title", "twitter:title")
DESCRIPTION_META_KEYS = ("og:description", "description", "twitter:description")
IMAGE_META_KEYS = (
    "og:image",
    "og:image:url",
    "og:image:secure_url",
    "twitter:image",
    "twitter:image:src",
)
PREFERRED_ICON_TYPES = ("image/png", "image/svg+xml")

_WHITESPACE_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"<[a-zA-Z!/][^>]*>")
_SIZES_RE = re.compile(r"(\d+)\s*[xX]\s*(\d+)")
# Scalable icons outrank any raster size
_ANY_SIZE = 1 << 30
_READER_TITLE_RE = re.compile(r"^\s*Title:\s*(.+?)\s*$", re.MULTILINE)
_READER_DESCRIPTION_RE = re.compile(r"^\s*Description:\s*(.+?)\s*$", re.MULTILINE)
_MARKDOWN_IMAGE_RE = re.compile(r"!\[[^\]]*\]\(\s*<?([^)\s>]+)>?(?:\s+\"[^\"]*\")?\s*\)")

Document = Union[str, BeautifulSoup]


def clean_text(value: Optional[str]) -> Optional[str]:
    """Unescape entities and collapse whitespace; blank becomes None."""
    if not value:
        return None
    text = _WHITESPACE_RE.sub(" ", html.unescape(value)).strip()
    return text or None


def truncate(value: Optional[str], limit: int) -> Optional[str]:
    if value is None or len(value) <= limit:
        return value
    return value[: limit - 3].rstrip() + "..."


def finalize_metadata(metadata: PageMetadata, base_url: str) -> PageMetadata:
    """Whitespace-normalize, cap and resolve every field of ``metadata``."""
    return PageMetadata(
        title=truncate(clean_text(metadata.title), TITLE_MAX_LENGTH),
        description=truncate(clean_text(metadata.description), DESCRIPTION_MAX_LENGTH),
        image=resolve_url(metadata.image, base_url),
        favicon=resolve_url(metadata.favicon, base_url),
    )


def parse_document(html_text: str) -> BeautifulSoup:
    return BeautifulSoup(html_text or "", "html.parser")


def _as_soup(document: Document) -> BeautifulSoup:
    if isinstance(document, BeautifulSoup):
        return document
    return parse_document(document)


def looks_like_html(text: Optional[str]) -> bool:
    return bool(text) and _TAG_RE.search(text[:4096]) is not None


def extract_from_html(
    document: Document, effective_url: str, *, include_default_favicon: bool = True
) -> PageMetadata:
    """Extract preview metadata from an HTML document.

    Args:
        document: Raw HTML or an already parsed soup.
        effective_url: Post-redirect URL the document was served from.
        include_default_favicon: Fall back to ``/favicon.ico`` at the origin
            when the page declares no icon.
    """
    soup = _as_soup(document)
    meta = _meta_index(soup)

    metadata = PageMetadata(
        title=_first_text(meta, TITLE_META_KEYS)
        or _document_title(soup)
        or _first_h1(soup),
        description=_first_text(meta, DESCRIPTION_META_KEYS)
        or clean_text(_itemprop_value(soup, "description", allow_text=True)),
        image=_pick_image(soup, meta, effective_url),
        favicon=_pick_favicon(soup, meta, effective_url),
    )

    if metadata.missing_fields(("title", "description", "image")):
        raw = document if isinstance(document, str) else str(soup)
        structured = extract_from_jsonld(raw)
        structured.image = resolve_url(structured.image, effective_url)
        structured.title = clean_text(structured.title)
        structured.description = clean_text(structured.description)
        filled = metadata.merge_missing(structured)
        if filled:
            logger.debug(f"JSON-LD filled {filled} for {effective_url}")

    if metadata.favicon is None and include_default_favicon:
        origin = origin_of(effective_url)
        if origin:
            metadata.favicon = f"{origin}/favicon.ico"

    return metadata


def extract_from_reader_text(text: str, effective_url: str) -> PageMetadata:
    """Read a plain-text proxy rendering: ``Title:`` header and first Markdown image."""
    if looks_like_html(text):
        return extract_from_html(text, effective_url, include_default_favicon=False)

    metadata = PageMetadata()
    title = _READER_TITLE_RE.search(text or "")
    if title:
        metadata.title = clean_text(title.group(1))
    description = _READER_DESCRIPTION_RE.search(text or "")
    if description:
        metadata.description = clean_text(description.group(1))
    for match in _MARKDOWN_IMAGE_RE.finditer(text or ""):
        image = resolve_url(match.group(1), effective_url)
        if image:
            metadata.image = image
            break
    return metadata


def find_amp_url(document: Document, effective_url: str) -> Optional[str]:
    """Return the absolute ``<link rel="amphtml">`` target, if any."""
    soup = _as_soup(document)
    for link in soup.find_all("link", href=True):
        if "amphtml" in _rel_tokens(link):
            return resolve_url(link.get("href"), effective_url)
    return None


def _meta_index(soup: BeautifulSoup) -> dict[str, list[str]]:
    """Map lower-cased ``property``/``name`` keys to their contents, in document order."""
    index: dict[str, list[str]] = {}
    for tag in soup.find_all("meta"):
        content = tag.get("content")
        if not content or not content.strip():
            continue
        for attr in ("property", "name"):
            key = tag.get(attr)
            if isinstance(key, str) and key.strip():
                index.setdefault(key.strip().lower(), []).append(content.strip())
    return index


def _first_text(meta: dict[str, list[str]], keys: tuple[str, ...]) -> Optional[str]:
    for key in keys:
        for value in meta.get(key, []):
            text = clean_text(value)
            if text:
                return text
    return None


def _document_title(soup: BeautifulSoup) -> Optional[str]:
    container = soup.head or soup
    title = container.find("title")
    if title is None and container is not soup:
        title = soup.find("title")
    if title is None:
        return None
    return clean_text(title.get_text())


def _first_h1(soup: BeautifulSoup) -> Optional[str]:
    h1 = soup.find("h1")
    return clean_text(h1.get_text(" ")) if h1 else None


def _itemprop_tags(soup: BeautifulSoup, prop: str) -> list[Tag]:
    return [
        tag
        for tag in soup.find_all(attrs={"itemprop": True})
        if prop in str(tag.get("itemprop", "")).split()
    ]


def _itemprop_value(
    soup: BeautifulSoup, prop: str, allow_text: bool = False
) -> Optional[str]:
    for tag in _itemprop_tags(soup, prop):
        value = tag.get("content") or tag.get("src") or tag.get("href")
        if not value and allow_text and tag.name not in ("meta", "link", "img"):
            value = tag.get_text(" ")
        if value and value.strip():
            return value
    return None


def _rel_tokens(tag: Tag) -> list[str]:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [token.lower() for token in rel]


def _pick_image(
    soup: BeautifulSoup, meta: dict[str, list[str]], effective_url: str
) -> Optional[str]:
    candidates: list[str] = []
    for key in IMAGE_META_KEYS:
        candidates.extend(meta.get(key, []))
    for link in soup.find_all("link", href=True):
        if "image_src" in _rel_tokens(link):
            candidates.append(link["href"])
    itemprop_image = _itemprop_value(soup, "image")
    if itemprop_image:
        candidates.append(itemprop_image)

    seen = set()
    for candidate in candidates:
        candidate = candidate.strip()
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        resolved = resolve_url(candidate, effective_url)
        if resolved:
            return resolved
        logger.debug(f"Discarded image candidate {candidate[:80]!r}")
    return None


def _icon_size(link: Tag) -> int:
    sizes = str(link.get("sizes") or "").lower()
    if "any" in sizes:
        return _ANY_SIZE
    best = 0
    for width, height in _SIZES_RE.findall(sizes):
        best = max(best, int(width) * int(height))
    return best


def _pick_favicon(
    soup: BeautifulSoup, meta: dict[str, list[str]], effective_url: str
) -> Optional[str]:
    icons: list[Tag] = []
    shortcut_icons: list[Tag] = []
    touch_icons: list[Tag] = []

    for link in soup.find_all("link", href=True):
        rel = _rel_tokens(link)
        if "shortcut" in rel and "icon" in rel:
            shortcut_icons.append(link)
        elif "icon" in rel:
            icons.append(link)
        elif "apple-touch-icon" in rel or "apple-touch-icon-precomposed" in rel:
            touch_icons.append(link)

    preferred = [
        link
        for link in icons
        if str(link.get("type", "")).lower().strip() in PREFERRED_ICON_TYPES
    ]
    if preferred:
        # Stable sort keeps document order among equal sizes
        preferred.sort(key=_icon_size, reverse=True)
    ordered = preferred + [link for link in icons if link not in preferred]
    ordered += shortcut_icons + touch_icons

    for link in ordered:
        resolved = resolve_url(link.get("href"), effective_url)
        if resolved:
            return resolved

    for value in meta.get("msapplication-tileimage", []):
        resolved = resolve_url(value, effective_url)
        if resolved:
            return resolved
    return None
