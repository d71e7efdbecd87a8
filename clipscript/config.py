"""Configuration management for ClipScript."""
import logging
import sys
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_config_dir() -> Path:
    """Get the configuration directory for the current platform."""
    if sys.platform == "win32":
        # Windows: %APPDATA%/ClipScript
        base = Path.home() / "AppData" / "Roaming"
    elif sys.platform == "darwin":
        # macOS: ~/Library/Application Support/ClipScript
        base = Path.home() / "Library" / "Application Support"
    else:
        # Linux: ~/.config/ClipScript
        base = Path.home() / ".config"

    config_dir = base / "ClipScript"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CLIPSCRIPT_",
        extra="ignore",
        populate_by_name=True,
    )

    # Local storage (None = platform config directory)
    database_path: Optional[Path] = None
    session_path: Optional[Path] = None

    # Ledger
    starting_credits: int = 10  # Grant on sign-up
    generation_cost: int = 1  # Credits per generated script

    # Gemini
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    text_model: str = "gemini-3-flash-preview"
    tts_model: str = "gemini-2.5-flash-preview-tts"
    tts_sample_rate: int = 24000
    default_voice: str = "Kore"

    # Google identity
    google_userinfo_url: str = "https://www.googleapis.com/oauth2/v2/userinfo"

    log_level: str = "INFO"

    def resolved_database_path(self) -> str:
        """Database file path, defaulting to the config directory."""
        if self.database_path is not None:
            return str(self.database_path)
        return str(get_config_dir() / "clipscript.db")

    def resolved_session_path(self) -> Path:
        """Session file path, defaulting to the config directory."""
        if self.session_path is not None:
            return self.session_path
        return get_config_dir() / "session.json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Apply the configured log level to the root logger."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
