"""Tests for the preview metadata model."""

from datetime import datetime, timezone

from linkpreview.models import LinkRecord, PageMetadata


class TestPageMetadata:
    """Tests for PageMetadata."""

    def test_blank_strings_become_absent(self):
        metadata = PageMetadata(title="  ", description="", image="x", favicon=None)
        assert metadata.title is None
        assert metadata.description is None
        assert metadata.missing_fields() == ["title", "description", "favicon"]

    def test_merge_missing_never_overwrites(self):
        metadata = PageMetadata(title="Kept")
        filled = metadata.merge_missing(PageMetadata(title="Other", image="https://x/a.png"))
        assert filled == ["image"]
        assert metadata.title == "Kept"
        assert metadata.merge_missing(None) == []

    def test_core_field_checks(self):
        assert not PageMetadata(favicon="f").has_any_core_field()
        assert PageMetadata(image="i").has_any_core_field()
        assert PageMetadata(title="t", description="d", image="i").has_core_fields()

    def test_dict_round_trip_omits_absent_fields(self):
        metadata = PageMetadata.from_dict({"title": "T", "image": 5, "extra": "x"})
        assert metadata.to_dict() == {"title": "T"}
        assert PageMetadata.from_dict(None) == PageMetadata()

    def test_copy_is_independent(self):
        original = PageMetadata(title="A")
        clone = original.copy()
        clone.title = "B"
        assert original.title == "A"


class TestLinkRecord:
    """Tests for LinkRecord serialization."""

    def test_to_dict(self):
        stamp = datetime(2026, 1, 1, tzinfo=timezone.utc)
        record = LinkRecord("abc", "https://example.com", PageMetadata(title="T"), stamp)
        assert record.to_dict() == {
            "short_code": "abc",
            "original_url": "https://example.com",
            "metadata": {"title": "T"},
            "last_updated_at": "2026-01-01T00:00:00+00:00",
        }
