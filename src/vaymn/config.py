"""Configuration management for vaymn.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

PLACEHOLDER_URL = "YOUR_SUPABASE_URL"
MIN_KEY_LENGTH = 20


def is_remote_configured(url: Optional[str], key: Optional[str]) -> bool:
    """Check whether remote store credentials look usable.

    Placeholder values left over from a template count as unconfigured.
    """
    return bool(
        url
        and key
        and url != PLACEHOLDER_URL
        and len(key) > MIN_KEY_LENGTH
    )


@dataclass
class Config:
    """Application configuration."""

    # Local mirror
    db_path: Path

    # Remote store (Supabase / PostgREST)
    supabase_url: Optional[str]
    supabase_key: Optional[str]
    remote_timeout: float  # seconds

    # Logging
    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "VAYMN_DB_PATH",
            str(Path.home() / ".vaymn" / "vaymn.db"),
        )
        db_path = Path(db_path_str).expanduser()

        return cls(
            db_path=db_path,
            supabase_url=os.environ.get("VAYMN_SUPABASE_URL"),
            supabase_key=os.environ.get("VAYMN_SUPABASE_KEY"),
            remote_timeout=float(os.environ.get("VAYMN_REMOTE_TIMEOUT", "10")),
            log_level=os.environ.get("VAYMN_LOG_LEVEL", "WARNING").upper(),
        )

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if str(self.db_path) != ":memory:" and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if self.remote_timeout <= 0:
            errors.append(f"Remote timeout must be positive, got {self.remote_timeout}")

        return errors

    def has_remote_config(self) -> bool:
        """Check if remote store configuration is present."""
        return is_remote_configured(self.supabase_url, self.supabase_key)


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
