"""Micro-blogging pipeline: generic extraction plus the platform favicon."""

from __future__ import annotations

from linkpreview.config import MICROBLOG_FAVICON_URL
from linkpreview.models import PageMetadata


def apply_platform_defaults(metadata: PageMetadata) -> PageMetadata:
    """Use the platform's own icon when the page declared none."""
    if metadata.favicon is None:
        metadata.favicon = MICROBLOG_FAVICON_URL
    return metadata
