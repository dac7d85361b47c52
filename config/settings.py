"""
Country Name Reconciler - Configuration

Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Output location for review queues and joined tables
    OUTPUT_DIR: str = Field(default=f"{PROJECT_ROOT}/data")

    @property
    def project_root(self) -> Path:
        """Return project root directory."""
        return PROJECT_ROOT

    # Application
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")

    # Name reconciliation settings
    MAX_EDIT_DISTANCE: int = Field(default=2, ge=0)
    NORMALIZE_NAMES: bool = Field(default=False)
    AUTO_ACCEPT_FUZZY: bool = Field(default=True)

    # Optional CSV of (pattern, replacement) rules applied after the built-in table
    OVERRIDES_PATH: str = Field(default="")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
