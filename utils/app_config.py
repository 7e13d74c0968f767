"""Process configuration assembled once from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class AppConfig:
    """Settings shared by the identification pipeline.

    Attributes:
        openrouter_api_key: Credential for the primary completion provider.
        gemini_api_key: Credential for the fallback completion provider.
        primary_model: Model name requested from the primary provider.
        fallback_model: Model name requested from the fallback provider.
        openrouter_base_url: OpenAI-compatible endpoint of the primary provider.
        gemini_base_url: OpenAI-compatible endpoint of the fallback provider.
        xeno_canto_api_key: Key for the recording archive; sounds are skipped without it.
        database_dir: Directory holding the SQLite species cache.
        upload_dir: Root directory that `imagePath` references resolve against.
        log_level: Logging level name for `logging.basicConfig`.
    """

    openrouter_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    primary_model: str = "openai/gpt-4o"
    fallback_model: str = "gemini-2.0-flash"
    openrouter_base_url: str = DEFAULT_OPENROUTER_BASE_URL
    gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
    xeno_canto_api_key: Optional[str] = None
    database_dir: Optional[str] = None
    upload_dir: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build the configuration from the current process environment."""
        return cls(
            openrouter_api_key=_optional("OPENROUTER_API_KEY"),
            gemini_api_key=_optional("GEMINI_API_KEY"),
            primary_model=_optional("PRIMARY_MODEL") or cls.primary_model,
            fallback_model=_optional("FALLBACK_MODEL") or cls.fallback_model,
            openrouter_base_url=_optional("OPENROUTER_BASE_URL") or DEFAULT_OPENROUTER_BASE_URL,
            gemini_base_url=_optional("GEMINI_BASE_URL") or DEFAULT_GEMINI_BASE_URL,
            xeno_canto_api_key=_optional("XENO_CANTO_API_KEY"),
            database_dir=_optional("DATABASE_DIR"),
            upload_dir=_optional("UPLOAD_DIR"),
            log_level=(_optional("LOG_LEVEL") or "INFO").upper(),
        )

    @property
    def has_completion_provider(self) -> bool:
        """True when at least one completion provider can be called."""
        return bool(self.openrouter_api_key or self.gemini_api_key)
