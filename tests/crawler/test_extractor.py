"""End-to-end tests for MetadataExtractor over canned responses."""

import dataclasses
from unittest.mock import patch

from linkpreview.config import (
    MICROBLOG_FAVICON_URL,
    VIDEO_EMBED_INFO_URL,
    VIDEO_FAVICON_URL,
    VIDEO_OEMBED_URL,
)
from linkpreview.crawler import ensure_minimum
from linkpreview.errors import FetchTimeoutError
from linkpreview.models import PageMetadata
from tests.helpers import ARTICLE_HTML, FakeFetcher, html_response, json_response

VIDEO_ID = "dQw4w9WgXcQ"
WATCH_URL = f"https://www.youtube.com/watch?v={VIDEO_ID}"
THUMBNAIL = f"https://img.youtube.com/vi/{VIDEO_ID}/maxresdefault.jpg"


class TestGenericPages:
    """Generic pipeline: primary fetch and HTML extraction."""

    def test_complete_page_in_one_attempt(self, make_extractor):
        url = "https://example.com/story"
        fetcher = FakeFetcher({url: html_response(url, ARTICLE_HTML)})

        result = make_extractor(fetcher).extract(url)

        assert result.metadata.to_dict() == {
            "title": "A Specific Article Title",
            "description": "A sufficiently long, specific description of the article.",
            "image": "https://example.com/img/lead.png",
            "favicon": "https://example.com/icons/icon-32.png",
        }
        assert result.is_weak is False
        assert result.attempt.attempts_used == 1
        assert fetcher.urls == [url]

    def test_input_is_normalized_before_fetching(self, make_extractor):
        fetcher = FakeFetcher(
            {"https://example.com": html_response("https://example.com", ARTICLE_HTML)}
        )
        result = make_extractor(fetcher).extract("Example.COM/")
        assert result.attempt.target_url == "https://example.com"
        assert result.metadata.title == "A Specific Article Title"

    def test_relative_image_uses_effective_url(self, make_extractor):
        url = "https://short.example/x"
        fetcher = FakeFetcher(
            {url: html_response(url, ARTICLE_HTML, effective_url="https://news.example/a/b")}
        )
        result = make_extractor(fetcher).extract(url)
        assert result.metadata.image == "https://news.example/img/lead.png"
        assert result.attempt.effective_url == "https://news.example/a/b"

    def test_invalid_url_still_yields_minimum(self, make_extractor):
        fetcher = FakeFetcher()
        result = make_extractor(fetcher).extract("not a url")

        assert result.metadata.title == "Website"
        assert result.metadata.favicon.startswith("https://www.google.com/s2/favicons")
        assert result.is_weak is True
        assert fetcher.calls == []

    def test_always_timing_out_uses_every_attempt_and_never_raises(self, make_extractor):
        url = "https://slow.example.com/page"
        fetcher = FakeFetcher({url: FetchTimeoutError("slow")})

        result = make_extractor(fetcher).extract(url)

        assert result.attempt.attempts_used == 3
        assert fetcher.urls == [url, url, url]
        assert result.is_weak is True
        assert result.metadata.title == "Slow Example"
        assert result.synthesized == ("title", "favicon")

    def test_client_error_is_attempted_once(self, make_extractor):
        url = "https://example.com/missing"
        fetcher = FakeFetcher({url: html_response(url, "<html></html>", status_code=404)})

        result = make_extractor(fetcher).extract(url)

        assert result.attempt.attempts_used == 1
        assert result.attempt.http_status == 404
        assert result.metadata.title == "Example"

    def test_unexpected_failure_is_contained(self, make_extractor):
        fetcher = FakeFetcher()
        with patch("linkpreview.crawler.classify", side_effect=RuntimeError("boom")):
            result = make_extractor(fetcher).extract("https://example.com")
        assert result.metadata.title == "Example"
        assert result.is_weak is True

    def test_result_serialization(self, make_extractor):
        url = "https://example.com/story"
        fetcher = FakeFetcher({url: html_response(url, ARTICLE_HTML)})
        data = make_extractor(fetcher).extract(url).to_dict(include_trace=True)

        assert data["url"] == url
        assert data["is_weak"] is False
        assert data["attempt"]["strategy_trace"][0]["strategy"] == "primary_fetch"


class TestVideoPages:
    """Video platform pipeline."""

    def test_oembed_supplies_title_and_author(self, make_extractor):
        fetcher = FakeFetcher(
            {
                VIDEO_OEMBED_URL: json_response(
                    VIDEO_OEMBED_URL,
                    {
                        "title": "Never Gonna Give You Up",
                        "author_name": "Rick Astley",
                        "thumbnail_url": "https://i.ytimg.com/vi/x/hqdefault.jpg",
                    },
                )
            }
        )

        result = make_extractor(fetcher).extract(f"https://youtu.be/{VIDEO_ID}")

        assert result.metadata.to_dict() == {
            "title": "Never Gonna Give You Up",
            "description": "By Rick Astley",
            "image": THUMBNAIL,
            "favicon": VIDEO_FAVICON_URL,
        }
        assert fetcher.urls == [VIDEO_OEMBED_URL]
        assert fetcher.calls[0]["params"]["url"] == WATCH_URL

    def test_embed_info_used_when_oembed_fails(self, make_extractor):
        fetcher = FakeFetcher(
            {
                VIDEO_OEMBED_URL: json_response(VIDEO_OEMBED_URL, {}, status_code=401),
                VIDEO_EMBED_INFO_URL: json_response(
                    VIDEO_EMBED_INFO_URL,
                    {"title": "From Embed Info", "author_name": "Channel Name"},
                ),
            }
        )
        result = make_extractor(fetcher).extract(WATCH_URL)
        assert result.metadata.title == "From Embed Info"
        assert fetcher.urls == [VIDEO_OEMBED_URL, VIDEO_EMBED_INFO_URL]

    def test_watch_page_strips_platform_boilerplate(self, make_extractor):
        page = (
            "<html><head><title>My Clip - YouTube</title>"
            '<meta name="description" content="Enjoy the videos and music you love, '
            'upload original content, and share it all with friends.">'
            "</head></html>"
        )
        fetcher = FakeFetcher(
            {
                VIDEO_EMBED_INFO_URL: json_response(VIDEO_EMBED_INFO_URL, {"error": "no"}),
                WATCH_URL: html_response(WATCH_URL, page),
            }
        )
        result = make_extractor(fetcher).extract(WATCH_URL)
        assert result.metadata.title == "My Clip"
        assert result.metadata.description is None
        assert result.metadata.image == THUMBNAIL

    def test_falls_back_to_generic_after_client_error(self, make_extractor):
        fetcher = FakeFetcher(
            {
                VIDEO_OEMBED_URL: json_response(VIDEO_OEMBED_URL, {}, status_code=404),
                VIDEO_EMBED_INFO_URL: json_response(VIDEO_EMBED_INFO_URL, {"error": "404"}),
                WATCH_URL: html_response(WATCH_URL, "<html></html>", status_code=404),
            }
        )

        result = make_extractor(fetcher).extract(WATCH_URL)

        assert result.attempt.attempts_used == 1
        assert result.metadata.image == THUMBNAIL
        assert result.metadata.title == "Youtube"
        assert result.is_weak is True

    def test_weak_video_result_is_completed_by_generic_pipeline(self, make_extractor):
        page = (
            "<html><head><title>Clip - YouTube</title>"
            '<meta property="og:description" content="A full walkthrough of the new release.">'
            "</head></html>"
        )
        fetcher = FakeFetcher(
            {
                VIDEO_OEMBED_URL: json_response(VIDEO_OEMBED_URL, {"title": "Release Walkthrough"}),
                WATCH_URL: html_response(WATCH_URL, page),
            }
        )

        result = make_extractor(fetcher).extract(WATCH_URL)

        assert result.metadata.title == "Release Walkthrough"
        assert result.metadata.description == "A full walkthrough of the new release."
        assert result.metadata.image == THUMBNAIL
        assert result.metadata.favicon == VIDEO_FAVICON_URL
        assert result.is_weak is False
        assert fetcher.urls == [VIDEO_OEMBED_URL, WATCH_URL]

    def test_thumbnail_is_identical_for_every_link_shape(self, make_extractor):
        images = set()
        for url in (
            WATCH_URL,
            f"https://youtu.be/{VIDEO_ID}",
            f"https://www.youtube.com/embed/{VIDEO_ID}",
            f"https://www.youtube.com/v/{VIDEO_ID}",
        ):
            fetcher = FakeFetcher(
                {
                    VIDEO_OEMBED_URL: json_response(
                        VIDEO_OEMBED_URL,
                        {"title": "Some Video Title", "author_name": "Channel Name"},
                    )
                }
            )
            images.add(make_extractor(fetcher).extract(url).metadata.image)
        assert images == {THUMBNAIL}


class TestMicroblogPages:
    """Micro-blogging pipeline."""

    def test_platform_favicon_when_none_declared(self, make_extractor):
        url = "https://x.com/someone/status/1"
        page = (
            '<html><head><meta property="og:title" content="Someone on X">'
            '<meta property="og:description" content="A post with enough words in it.">'
            "</head></html>"
        )
        fetcher = FakeFetcher({url: html_response(url, page)})

        result = make_extractor(fetcher).extract(url)

        assert result.metadata.favicon == MICROBLOG_FAVICON_URL
        assert result.metadata.title == "Someone on X"


class TestEnsureMinimum:
    """Tests for ensure_minimum and result patches."""

    def test_fills_title_and_favicon(self):
        metadata = PageMetadata(description="kept")
        assert ensure_minimum(metadata, "https://www.example.com") == ["title", "favicon"]
        assert metadata.title == "Example"
        assert metadata.description == "kept"

    def test_patch_drops_synthesized_fields(self, make_extractor):
        url = "https://slow.example.com/page"
        fetcher = FakeFetcher({url: FetchTimeoutError("slow")})
        settings = dataclasses.replace(make_extractor(fetcher).settings, max_attempts=1)

        result = make_extractor(fetcher, settings).extract(url)

        assert result.metadata.title == "Slow Example"
        assert result.patch() == PageMetadata()
