"""Rewriting of target URLs through the read-only HTML-rendering proxy.

Two proxy URL shapes are supported:

- prefix style, e.g. ``https://r.jina.ai/`` -> ``https://r.jina.ai/https://example.com/a``
- query style, a prefix ending in ``=`` or holding a ``{url}`` placeholder,
  e.g. ``https://proxy.example/?url=`` -> ``https://proxy.example/?url=https%3A%2F%2F...``
"""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import quote_plus, urlparse

from .utils import mask_credentials

logger = logging.getLogger(__name__)

METADATA_HOSTS = {
    "metadata.google.internal",
    "metadata",
    "169.254.169.254",
    "metadata.google.internal.",  # trailing dot variant
}

# Ask the rendering proxy for HTML so meta tags survive
READER_PROXY_HEADERS = {"X-Return-Format": "html"}


def should_bypass(target_url: str, proxy_prefix: str) -> bool:
    """Return True if ``target_url`` must not be sent through the proxy."""
    try:
        host = (urlparse(target_url).hostname or "").lower()
        proxy_host = (urlparse(proxy_prefix).hostname or "").lower()
    except ValueError:
        return True

    if not host:
        return True
    # Proxying the proxy would only loop
    if host == proxy_host:
        return True
    return host in METADATA_HOSTS


def reader_proxy_url(proxy_prefix: Optional[str], target_url: str) -> Optional[str]:
    """Build the proxied URL for ``target_url``; None when proxying is off or refused."""
    if not proxy_prefix:
        return None
    if should_bypass(target_url, proxy_prefix):
        logger.debug(
            f"Reader proxy bypassed for {target_url[:80]} "
            f"(proxy {mask_credentials(proxy_prefix)})"
        )
        return None

    if "{url}" in proxy_prefix:
        return proxy_prefix.replace("{url}", quote_plus(target_url))
    if proxy_prefix.endswith("="):
        return proxy_prefix + quote_plus(target_url)
    return proxy_prefix.rstrip("/") + "/" + target_url
