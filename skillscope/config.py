"""Configuration management for the skillscope disclosure engine."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .skills.text import DEFAULT_STOPWORDS


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SKILLSCOPE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Corpus
    corpus_dir: Path = Field(default=Path("./skills"))
    size_unit: Literal["chars", "tokens"] = Field(default="tokens")

    # Disclosure
    default_budget: int = Field(default=4000, gt=0)
    extra_stopwords: list[str] = Field(default_factory=list)

    # Sessions
    session_ttl_seconds: float = Field(default=3600.0, gt=0)
    max_sessions: int = Field(default=1000, gt=0)

    # HTTP server
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8087)

    # Logging
    log_level: str = Field(default="INFO")

    @property
    def stopwords(self) -> frozenset:
        """Default stopwords plus any configured extras (lowercased)."""
        extras = {w.strip().lower() for w in self.extra_stopwords if w.strip()}
        return DEFAULT_STOPWORDS | frozenset(extras)

    def resolve_corpus_dir(self) -> Path:
        """Corpus directory, relative paths resolved against the working directory."""
        path = self.corpus_dir.expanduser()
        if path.is_absolute():
            return path
        return Path.cwd() / path


# Global settings instance
settings = Settings()
