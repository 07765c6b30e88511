"""Canonicalization of user-supplied URLs.

The normalized form is the cache key for stored previews, so the same
semantic URL must always normalize to the same string.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from linkpreview.config import ICON_PROXY_MARKER, ICON_PROXY_TEMPLATE
from linkpreview.errors import InvalidUrlError
from linkpreview.utils.url_classifier import VIDEO_SHORT_LINK_HOST, extract_video_id

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_DEFAULT_PORTS = {"http": 80, "https": 443}
_HOST_RE = re.compile(r"^[a-z0-9._~%!$&'()*+,;=:\[\]-]+$")


def normalize_url(raw: str) -> str:
    """Turn a raw input string into a fetchable absolute URL.

    Adds ``https://`` when no scheme is present, lower-cases the scheme and
    host, drops default ports, rewrites short video links to the canonical
    watch URL and removes the trailing slash of a bare root path.

    Raises:
        InvalidUrlError: the input cannot be parsed as an http(s) URL.
    """
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidUrlError("Empty URL")

    candidate = raw.strip()
    if not _SCHEME_RE.match(candidate):
        candidate = "https://" + candidate.lstrip("/")

    try:
        parts = urlsplit(candidate)
        port = parts.port
    except ValueError as exc:
        raise InvalidUrlError(f"Unparsable URL {raw!r}: {exc}") from exc

    scheme = parts.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        raise InvalidUrlError(f"Unsupported scheme {scheme!r} in {raw!r}")

    host = (parts.hostname or "").lower().rstrip(".")
    if not host or " " in host or not _HOST_RE.match(host):
        raise InvalidUrlError(f"Missing or invalid host in {raw!r}")

    if host == VIDEO_SHORT_LINK_HOST:
        video_id = extract_video_id(f"{host}{parts.path}")
        if video_id:
            return _canonical_watch_url(video_id, parts.query)

    netloc = host
    if ":" in host:
        netloc = f"[{host}]"
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo += f":{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    if port is not None and port != _DEFAULT_PORTS[scheme]:
        netloc += f":{port}"

    path = parts.path or "/"
    if path == "/" and not parts.query and not parts.fragment:
        path = ""

    normalized = urlunsplit((scheme, netloc, path, parts.query, parts.fragment))
    logger.debug(f"Normalized {raw!r} -> {normalized}")
    return normalized


def _canonical_watch_url(video_id: str, query: str) -> str:
    params = [("v", video_id)]
    params.extend(
        (key, value)
        for key, value in parse_qsl(query, keep_blank_values=True)
        if key != "v"
    )
    return urlunsplit(("https", "www.youtube.com", "/watch", urlencode(params), ""))


def origin_of(url: str) -> str | None:
    """Return ``scheme://host[:port]`` for an absolute http(s) URL."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme not in _DEFAULT_PORTS or not parts.netloc:
        return None
    return f"{parts.scheme}://{parts.netloc}"


def resolve_url(candidate: str | None, base_url: str) -> str | None:
    """Resolve an image or favicon reference to an absolute http(s) URL.

    Protocol-relative and relative references are resolved against the
    origin of ``base_url``. Anything that does not end up as a parseable
    http(s) URL with a host is discarded.
    """
    if not candidate:
        return None
    value = candidate.strip()
    if not value:
        return None

    origin = origin_of(base_url)
    try:
        if value.startswith("//"):
            scheme = urlsplit(base_url).scheme or "https"
            resolved = f"{scheme}:{value}"
        elif _SCHEME_RE.match(value):
            resolved = value
        elif ":" in value.split("/", 1)[0]:
            # data:, javascript:, mailto: and friends
            return None
        elif origin is None:
            return None
        else:
            resolved = urljoin(origin + "/", value)

        parts = urlsplit(resolved)
        _ = parts.port  # raises ValueError on a malformed port
    except ValueError:
        logger.debug(f"Discarding unparsable URL candidate {value[:80]!r}")
        return None

    if parts.scheme.lower() not in _DEFAULT_PORTS or not parts.hostname:
        return None
    if any(ch.isspace() for ch in parts.netloc):
        return None
    return resolved


def hostname_of(url: str) -> str | None:
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def domain_title(url: str) -> str:
    """Derive a readable fallback title from a URL's host.

    ``https://www.example.com`` becomes ``Example`` and
    ``https://blog.example.co`` becomes ``Blog Example``.
    """
    host = hostname_of(url)
    if not host:
        return "Website"
    if host.startswith("www."):
        host = host[4:]
    labels = host.split(".")
    if len(labels) > 1:
        labels = labels[:-1]
    words = [label[:1].upper() + label[1:] for label in labels if label]
    return " ".join(words) or "Website"


def icon_proxy_url(host: str, size: int = 128) -> str:
    return ICON_PROXY_TEMPLATE.format(host=host, size=size)


def default_favicon(url: str) -> str:
    """Favicon used when nothing better is known: the generic icon service."""
    # An empty domain still yields the service's generic globe icon
    return icon_proxy_url(hostname_of(url) or "")


def is_icon_proxy_url(url: str | None) -> bool:
    return bool(url) and ICON_PROXY_MARKER in url
