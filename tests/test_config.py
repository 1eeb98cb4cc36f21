import pytest

from config import Settings


def test_from_env_defaults(monkeypatch):
    for name in (
        "YOUTUBE_API_KEY",
        "LLM_PROVIDER",
        "OPENAI_MODEL",
        "SCRAPE_TIMEOUT_SECONDS",
        "SCRAPE_WHEN_EXHAUSTED",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.youtube_api_key is None
    assert not settings.youtube_available
    assert settings.llm_provider == "openai"
    assert settings.openai_model == "gpt-4o-mini"
    assert settings.scrape_timeout_seconds == 10.0
    assert settings.scrape_when_exhausted is False
    assert settings.log_level == "INFO"


def test_from_env_reads_values(monkeypatch):
    monkeypatch.setenv("YOUTUBE_API_KEY", " yt-key ")
    monkeypatch.setenv("LLM_PROVIDER", "Gemini")
    monkeypatch.setenv("SCRAPE_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("SCRAPE_WHEN_EXHAUSTED", "true")

    settings = Settings.from_env()

    assert settings.youtube_api_key == "yt-key"
    assert settings.youtube_available
    assert settings.llm_provider == "gemini"
    assert settings.scrape_timeout_seconds == 2.5
    assert settings.scrape_when_exhausted is True


def test_blank_key_counts_as_unset(monkeypatch):
    monkeypatch.setenv("YOUTUBE_API_KEY", "   ")
    assert not Settings.from_env().youtube_available


def test_bad_number_is_rejected(monkeypatch):
    monkeypatch.setenv("SCRAPE_TIMEOUT_SECONDS", "soon")
    with pytest.raises(ValueError):
        Settings.from_env()


def test_repr_hides_keys():
    settings = Settings(youtube_api_key="secret-yt", openai_api_key="secret-oai")
    assert "secret" not in repr(settings)
