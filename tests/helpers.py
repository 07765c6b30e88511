"""Canned responses and a routing fake fetcher shared by the test suite."""

from __future__ import annotations

import json
from typing import Any, Callable, Optional, Union

from linkpreview.config import ExtractionSettings
from linkpreview.crawler.deadline import Deadline
from linkpreview.crawler.fetcher import BoundedFetcher, FetchResult
from linkpreview.errors import NetworkError

Route = Union[FetchResult, Exception, Callable[..., FetchResult]]


def html_response(
    url: str,
    body: str,
    status_code: int = 200,
    content_type: str = "text/html; charset=utf-8",
    effective_url: Optional[str] = None,
) -> FetchResult:
    return FetchResult(
        url=url,
        effective_url=effective_url or url,
        status_code=status_code,
        content_type=content_type,
        body=body,
    )


def json_response(url: str, payload: Any, status_code: int = 200) -> FetchResult:
    return html_response(
        url, json.dumps(payload), status_code=status_code, content_type="application/json"
    )


class FakeFetcher(BoundedFetcher):
    """Fetcher serving canned responses keyed by URL (query params ignored)."""

    def __init__(self, routes: Optional[dict[str, Route]] = None, settings=None):
        super().__init__(settings or ExtractionSettings(use_cloudscraper=False))
        self.routes: dict[str, Route] = dict(routes or {})
        self.calls: list[dict[str, Any]] = []

    @property
    def urls(self) -> list[str]:
        return [call["url"] for call in self.calls]

    def fetch(
        self,
        url: str,
        deadline: Deadline,
        *,
        timeout: Optional[float] = None,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, str]] = None,
    ) -> FetchResult:
        self.calls.append({"url": url, "headers": headers or {}, "params": params or {}})
        route = self.routes.get(url)
        if route is None:
            raise NetworkError(f"no route for {url}")
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(url, deadline)
        return route


ARTICLE_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>Fallback Title | Example</title>
  <meta property="og:title" content="A Specific Article Title">
  <meta property="og:description" content="A sufficiently long, specific description of the article.">
  <meta property="og:image" content="/img/lead.png">
  <link rel="icon" type="image/png" href="/icons/icon-32.png">
</head>
<body><h1>Heading</h1></body>
</html>
"""
