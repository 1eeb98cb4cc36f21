import os
from dataclasses import dataclass
from typing import Optional


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_bool(name: str, default: bool = False) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = _env(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration, passed explicitly to the components that need it.

    Build it with `Settings.from_env()` in the app, or construct it directly in
    tests with fake credentials.
    """

    youtube_api_key: Optional[str] = None
    llm_provider: str = "openai"
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    gemini_api_key: Optional[str] = None
    gemini_model: Optional[str] = None
    whisper_model: str = "whisper-1"
    scrape_timeout_seconds: float = 10.0
    scrape_when_exhausted: bool = False
    log_level: str = "INFO"

    @property
    def youtube_available(self) -> bool:
        return bool(self.youtube_api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            youtube_api_key=_env("YOUTUBE_API_KEY"),
            llm_provider=_env("LLM_PROVIDER", "openai").lower(),
            openai_api_key=_env("OPENAI_API_KEY"),
            openai_base_url=_env("OPENAI_BASE_URL"),
            openai_model=_env("OPENAI_MODEL", "gpt-4o-mini"),
            gemini_api_key=_env("GEMINI_API_KEY"),
            gemini_model=_env("GEMINI_MODEL"),
            whisper_model=_env("WHISPER_MODEL", "whisper-1"),
            scrape_timeout_seconds=_env_float("SCRAPE_TIMEOUT_SECONDS", 10.0),
            scrape_when_exhausted=_env_bool("SCRAPE_WHEN_EXHAUSTED"),
            log_level=_env("LOG_LEVEL", "INFO").upper(),
        )

    def __repr__(self) -> str:
        # Keys stay out of logs.
        return (
            f"Settings(youtube_available={self.youtube_available}, "
            f"llm_provider={self.llm_provider!r}, "
            f"scrape_when_exhausted={self.scrape_when_exhausted})"
        )
