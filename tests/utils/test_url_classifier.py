"""Tests for host-based site classification and video id extraction."""

import pytest

from linkpreview.crawler.video import video_thumbnail_url
from linkpreview.utils.url_classifier import SiteKind, classify, extract_video_id

VIDEO_ID = "dQw4w9WgXcQ"


class TestClassify:
    """Tests for classify."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://youtube.com/shorts/dQw4w9WgXcQ",
            "https://m.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ",
            "https://www.youtube-nocookie.com/embed/dQw4w9WgXcQ",
        ],
    )
    def test_video_hosts(self, url):
        assert classify(url) is SiteKind.VIDEO

    @pytest.mark.parametrize(
        "url",
        ["https://x.com/someone/status/1", "https://mobile.twitter.com/someone"],
    )
    def test_microblog_hosts(self, url):
        assert classify(url) is SiteKind.MICROBLOG

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.com/",
            "https://notyoutube.com/watch?v=dQw4w9WgXcQ",
            "https://box.com/file",
            "not a url",
        ],
    )
    def test_everything_else_is_generic(self, url):
        assert classify(url) is SiteKind.GENERIC


class TestExtractVideoId:
    """Tests for extract_video_id."""

    @pytest.mark.parametrize(
        "url",
        [
            f"https://www.youtube.com/watch?v={VIDEO_ID}",
            f"https://www.youtube.com/watch?feature=share&v={VIDEO_ID}",
            f"https://www.youtube.com/embed/{VIDEO_ID}",
            f"https://youtu.be/{VIDEO_ID}",
            f"https://www.youtube.com/v/{VIDEO_ID}",
        ],
    )
    def test_known_shapes_yield_the_same_id(self, url):
        assert extract_video_id(url) == VIDEO_ID

    def test_all_shapes_share_one_thumbnail(self):
        shapes = [
            f"https://www.youtube.com/watch?v={VIDEO_ID}",
            f"https://www.youtube.com/embed/{VIDEO_ID}",
            f"https://youtu.be/{VIDEO_ID}",
            f"https://www.youtube.com/v/{VIDEO_ID}",
        ]
        thumbnails = {video_thumbnail_url(extract_video_id(url)) for url in shapes}
        assert thumbnails == {f"https://img.youtube.com/vi/{VIDEO_ID}/maxresdefault.jpg"}

    def test_missing_or_short_id(self):
        assert extract_video_id("https://www.youtube.com/") is None
        assert extract_video_id("https://www.youtube.com/watch?v=short") is None
        assert extract_video_id("") is None
