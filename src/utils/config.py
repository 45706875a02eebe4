"""
Configuration management for the Scale application.
"""
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

# Find the project root (where .env file lives)
# Go up from src/utils/config.py to find the root
_THIS_FILE = Path(__file__).resolve()
_PROJECT_ROOT = _THIS_FILE.parent.parent.parent  # src/utils -> src -> project root
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Document store (PostgreSQL JSONB adapter)
    scale_database_url: Optional[str] = None
    enable_database: bool = True

    # Blob storage for object images
    blob_base_url: Optional[str] = None
    blob_dir: str = "data/uploads"

    # Group limits
    max_metrics_per_group: int = 10
    max_metric_value: float = 1_000_000

    # Interaction timing
    rating_debounce_seconds: float = 0.5
    popup_hover_grace_seconds: float = 0.15
    popup_padding: float = 8.0

    # Streamlit shell
    app_password: Optional[str] = None
    app_base_url: str = "http://localhost:8501"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def has_database(self) -> bool:
        """Check if the PostgreSQL document store is available"""
        return self.enable_database and self.scale_database_url is not None

    @property
    def has_password(self) -> bool:
        """Check if the Streamlit shell is password protected"""
        return bool(self.app_password)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    Returns:
        Settings instance loaded from environment
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """
    Force reload settings from environment.

    Returns:
        New Settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
