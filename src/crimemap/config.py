"""
Centralized configuration management.
Uses environment variables with sensible defaults.
"""
from pathlib import Path
from pydantic_settings import BaseSettings


def _find_project_root() -> Path:
    """Find project root by looking for pyproject.toml."""
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return current.parent.parent  # Fallback: src/crimemap -> project root


class Settings(BaseSettings):
    """Application settings with validation."""

    # Project paths
    PROJECT_ROOT: Path = _find_project_root()
    DATA_DIR: Path = PROJECT_ROOT / "data"
    INCIDENTS_FILE: Path = DATA_DIR / "sample-data.csv"
    EXPORT_DIR: Path = DATA_DIR / "exports"
    LOG_DIR: Path = PROJECT_ROOT / "logs"

    # Clustering defaults (used by the CLI and API)
    DEFAULT_EPSILON: float = 0.01
    DEFAULT_MIN_POINTS: int = 3

    # Map defaults
    DEFAULT_CENTER_LAT: float = 42.3601  # Boston/Cambridge
    DEFAULT_CENTER_LNG: float = -71.0589
    EXPORT_FILENAME: str = "updated-locations.csv"

    # Logging
    LOG_LEVEL: str = "WARNING"
    LOG_FORMAT: str = "text"
    LOG_TO_FILE: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
