"""Pytest-wide fixtures for link preview tests.

No test touches the network: every fetch goes through ``FakeFetcher``.
"""

from __future__ import annotations

import os
from typing import Callable

import pytest

# Keep deployment settings out of the test run. Cleared BEFORE any
# linkpreview import so module-level config never sees them.
for key in ("DATABASE_URL", "MICROLINK_API_KEY", "MICROLINK_API_URL", "READER_PROXY_URL"):
    os.environ.pop(key, None)

from linkpreview.config import ExtractionSettings  # noqa: E402
from linkpreview.crawler import MetadataExtractor  # noqa: E402
from tests.helpers import ARTICLE_HTML, FakeFetcher  # noqa: E402


@pytest.fixture(autouse=True)
def clean_preview_env(monkeypatch):
    """Drop PREVIEW_* tunables so every test sees the defaults."""
    for key in list(os.environ):
        if key.startswith("PREVIEW_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("MICROLINK_API_KEY", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)


@pytest.fixture
def settings() -> ExtractionSettings:
    return ExtractionSettings(
        use_cloudscraper=False,
        reader_proxy_url=None,
        max_attempts=3,
        backoff_base=0.01,
        backoff_max=0.02,
    )


@pytest.fixture
def fake_fetcher(settings) -> FakeFetcher:
    return FakeFetcher(settings=settings)


@pytest.fixture
def make_extractor(settings) -> Callable[..., MetadataExtractor]:
    """Build an extractor over a fake fetcher with sleeping disabled."""

    def _make(fetcher: FakeFetcher, settings_override=None) -> MetadataExtractor:
        return MetadataExtractor(
            settings_override or settings, fetcher=fetcher, sleep=lambda _s: None
        )

    return _make


@pytest.fixture
def article_html() -> str:
    return ARTICLE_HTML
