"""Tests for environment-driven extraction settings."""

from linkpreview.config import ExtractionSettings


def test_defaults(monkeypatch):
    monkeypatch.delenv("READER_PROXY_URL", raising=False)
    settings = ExtractionSettings.from_env()
    assert settings.max_attempts == 3
    assert settings.fetch_timeout == 10.0
    assert settings.reader_proxy_url == "https://r.jina.ai/"
    assert settings.enrichment_api_key is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PREVIEW_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("PREVIEW_CRAWLER_MAX_AGE_HOURS", "2.5")
    monkeypatch.setenv("MICROLINK_API_KEY", "secret")
    monkeypatch.setenv("PREVIEW_USE_CLOUDSCRAPER", "no")
    settings = ExtractionSettings.from_env()
    assert settings.max_attempts == 5
    assert settings.crawler_max_age_hours == 2.5
    assert settings.enrichment_api_key == "secret"
    assert settings.use_cloudscraper is False


def test_malformed_values_fall_back(monkeypatch):
    monkeypatch.setenv("PREVIEW_FETCH_TIMEOUT", "soon")
    monkeypatch.setenv("PREVIEW_MAX_ATTEMPTS", "0")
    settings = ExtractionSettings.from_env()
    assert settings.fetch_timeout == 10.0
    assert settings.max_attempts == 1


def test_empty_reader_proxy_disables_it(monkeypatch):
    monkeypatch.setenv("READER_PROXY_URL", "  ")
    assert ExtractionSettings.from_env().reader_proxy_url is None


def test_api_key_hidden_from_repr():
    assert "secret" not in repr(ExtractionSettings(enrichment_api_key="secret"))
