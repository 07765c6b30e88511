"""
Structured data extraction from JSON-LD script blocks.

JSON-LD is a fallback source for previews: the values found here only fill
fields the Open Graph / meta tag pass left empty.

Handles:
- a single object, a top-level array, and ``@graph`` wrappers
- ``@type`` given as a string or a list
- ``image`` given as a string, an ``ImageObject`` or a list of either
"""

import json
import logging
import re
from typing import Any, Iterator

from linkpreview.errors import ParseError
from linkpreview.models import PageMetadata

logger = logging.getLogger(__name__)

# JSON-LD script block pattern
_JSONLD_BLOCK_RE = re.compile(
    r'<script[^>]*type=["\']application/ld\+json["\'][^>]*>(.*?)</script>',
    re.DOTALL | re.IGNORECASE,
)

# Page-like types whose name/description/image describe the page itself
PAGE_TYPES = frozenset(
    {
        "webpage",
        "webpageelement",
        "itempage",
        "aboutpage",
        "collectionpage",
        "profilepage",
        "article",
        "newsarticle",
        "reportagenewsarticle",
        "blogposting",
        "socialmediaposting",
        "techarticle",
        "product",
        "videoobject",
        "recipe",
        "event",
    }
)


def extract_from_jsonld(html_text: str) -> PageMetadata:
    """Collect title, description and image from page-typed JSON-LD nodes.

    Earlier nodes win. Blocks that fail to parse are skipped.
    """
    result = PageMetadata()
    if not html_text or "application/ld+json" not in html_text.lower():
        return result

    for node in iter_jsonld_nodes(html_text):
        if not _is_page_node(node):
            continue
        result.merge_missing(
            PageMetadata(
                title=_text_value(node.get("name")) or _text_value(node.get("headline")),
                description=_text_value(node.get("description")),
                image=image_from_jsonld(node.get("image") or node.get("thumbnailUrl")),
            )
        )
        if result.has_core_fields():
            break

    return result


def iter_jsonld_nodes(html_text: str) -> Iterator[dict[str, Any]]:
    """Yield every JSON object in every JSON-LD block, flattening arrays and ``@graph``."""
    for match in _JSONLD_BLOCK_RE.finditer(html_text):
        try:
            data = _load_block(match.group(1))
        except ParseError as exc:
            logger.debug(f"Skipping JSON-LD block: {exc}")
            continue
        yield from _flatten(data)


def _load_block(raw: str) -> Any:
    text = raw.strip()
    # Some CMSes wrap the payload in HTML comments or CDATA markers
    for prefix, suffix in (("<!--", "-->"), ("/*<![CDATA[*/", "/*]]>*/")):
        if text.startswith(prefix) and text.endswith(suffix):
            text = text[len(prefix) : -len(suffix)].strip()
    if not text:
        raise ParseError("empty JSON-LD block")
    try:
        return json.loads(text, strict=False)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ParseError(f"malformed JSON-LD: {exc}") from exc


def _flatten(data: Any) -> Iterator[dict[str, Any]]:
    if isinstance(data, list):
        for item in data:
            yield from _flatten(item)
    elif isinstance(data, dict):
        graph = data.get("@graph")
        if isinstance(graph, list):
            yield from _flatten(graph)
        if "@type" in data:
            yield data


def _is_page_node(node: dict[str, Any]) -> bool:
    node_type = node.get("@type", "")
    types = node_type if isinstance(node_type, list) else [node_type]
    return any(isinstance(t, str) and t.lower() in PAGE_TYPES for t in types)


def _text_value(value: Any) -> str | None:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        value = value.get("@value") or value.get("name")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def image_from_jsonld(value: Any) -> str | None:
    """
    Extract an image URL from a JSON-LD image field.

    Handles various formats:
    - "https://example.com/a.jpg"
    - {"@type": "ImageObject", "url": "https://example.com/a.jpg"}
    - [{"url": "..."}, "..."]
    """
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        return image_from_jsonld(value.get("url") or value.get("contentUrl"))
    if isinstance(value, list):
        for item in value:
            url = image_from_jsonld(item)
            if url:
                return url
    return None
