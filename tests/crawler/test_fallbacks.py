"""Tests for the fallback chain behind a short primary fetch."""

import dataclasses

from linkpreview.errors import FetchTimeoutError, NetworkError
from tests.helpers import ARTICLE_HTML, FakeFetcher, html_response, json_response

PROXY = "https://r.jina.ai/"
ENRICHMENT = "https://pro.microlink.io/"


def _with_proxy(settings, **changes):
    return dataclasses.replace(settings, reader_proxy_url=PROXY, **changes)


class TestReaderProxy:
    """Reader proxy after a failed primary fetch."""

    def test_used_after_primary_timeout(self, settings, make_extractor):
        url = "https://example.com/story"
        proxied = PROXY + url
        fetcher = FakeFetcher(
            {url: FetchTimeoutError("slow"), proxied: html_response(proxied, ARTICLE_HTML)}
        )

        result = make_extractor(fetcher, _with_proxy(settings)).extract(url)

        assert fetcher.urls == [url, proxied]
        assert fetcher.calls[1]["headers"] == {"X-Return-Format": "html"}
        # Relative references resolve against the target, not the proxy
        assert result.metadata.image == "https://example.com/img/lead.png"
        assert result.metadata.favicon == "https://example.com/icons/icon-32.png"
        assert result.is_weak is False

    def test_plain_text_rendering(self, settings, make_extractor):
        url = "https://example.com/story"
        proxied = PROXY + url
        text = (
            "Title: Proxy Rendered Title\n"
            "Description: Enough description text from the proxy rendering.\n"
            "![lead](/lead.jpg)\n"
        )
        fetcher = FakeFetcher(
            {
                url: NetworkError("reset"),
                proxied: html_response(proxied, text, content_type="text/plain"),
            }
        )
        result = make_extractor(fetcher, _with_proxy(settings)).extract(url)
        assert result.metadata.title == "Proxy Rendered Title"
        assert result.metadata.image == "https://example.com/lead.jpg"

    def test_not_used_when_primary_found_something(self, settings, make_extractor):
        url = "https://example.com/story"
        page = '<html><head><meta property="og:title" content="Only A Title Here"></head></html>'
        fetcher = FakeFetcher({url: html_response(url, page)})

        make_extractor(fetcher, _with_proxy(settings)).extract(url)

        assert all(not called.startswith(PROXY) for called in fetcher.urls)


class TestAmpMirror:
    """AMP mirror only fills missing fields."""

    def test_fills_missing_image_without_overwriting(self, settings, make_extractor):
        url = "https://example.com/story"
        amp = "https://example.com/amp/story"
        page = (
            '<html><head><meta property="og:title" content="Canonical Title">'
            '<meta name="description" content="Canonical description of the story.">'
            '<link rel="amphtml" href="/amp/story"></head></html>'
        )
        amp_page = (
            '<html><head><meta property="og:title" content="AMP Title">'
            '<meta property="og:image" content="/amp-lead.jpg"></head></html>'
        )
        fetcher = FakeFetcher({url: html_response(url, page), amp: html_response(amp, amp_page)})

        result = make_extractor(fetcher, _with_proxy(settings)).extract(url)

        assert result.metadata.title == "Canonical Title"
        assert result.metadata.image == "https://example.com/amp-lead.jpg"
        assert fetcher.urls == [url, amp]


class TestThumbnailHeuristic:
    """Embedded video thumbnail as a last-resort image."""

    def test_embedded_player_supplies_image(self, settings, make_extractor):
        url = "https://blog.example.com/post"
        page = (
            '<html><head><meta property="og:title" content="Post With A Video">'
            '<meta name="description" content="A post that embeds a video player.">'
            '</head><body><iframe src="https://www.youtube.com/embed/dQw4w9WgXcQ?rel=0">'
            "</iframe></body></html>"
        )
        fetcher = FakeFetcher({url: html_response(url, page)})

        result = make_extractor(fetcher).extract(url)

        assert result.metadata.image == "https://img.youtube.com/vi/dQw4w9WgXcQ/maxresdefault.jpg"


class TestEnrichment:
    """Optional enrichment API as the final fallback."""

    PAYLOAD = {
        "status": "success",
        "data": {
            "title": "Enriched Title",
            "description": "An enriched description from the API.",
            "image": {"url": "https://cdn.example.com/enriched.png"},
            "logo": {"url": "https://cdn.example.com/logo.png"},
        },
    }

    def _pdf(self, url):
        return html_response(url, "%PDF-1.7", content_type="application/pdf")

    def test_used_when_nothing_else_worked(self, settings, make_extractor):
        url = "https://example.com/report.pdf"
        fetcher = FakeFetcher(
            {url: self._pdf(url), ENRICHMENT: json_response(ENRICHMENT, self.PAYLOAD)}
        )
        keyed = dataclasses.replace(settings, enrichment_api_key="secret")

        result = make_extractor(fetcher, keyed).extract(url)

        assert result.metadata.to_dict() == {
            "title": "Enriched Title",
            "description": "An enriched description from the API.",
            "image": "https://cdn.example.com/enriched.png",
            "favicon": "https://cdn.example.com/logo.png",
        }
        call = fetcher.calls[-1]
        assert call["params"] == {"url": url}
        assert call["headers"]["x-api-key"] == "secret"

    def test_skipped_without_key(self, settings, make_extractor):
        url = "https://example.com/report.pdf"
        fetcher = FakeFetcher({url: self._pdf(url)})

        result = make_extractor(fetcher).extract(url)

        assert ENRICHMENT not in fetcher.urls
        assert result.metadata.title == "Example"

    def test_failures_are_swallowed(self, settings, make_extractor):
        url = "https://example.com/report.pdf"
        fetcher = FakeFetcher(
            {
                url: self._pdf(url),
                ENRICHMENT: json_response(ENRICHMENT, {"status": "fail"}),
            }
        )
        keyed = dataclasses.replace(settings, enrichment_api_key="secret", max_attempts=1)

        result = make_extractor(fetcher, keyed).extract(url)

        assert result.metadata.title == "Example"
        assert result.attempt.strategy_trace[-1].strategy == "enrichment_api"
        assert result.attempt.strategy_trace[-1].success is False
