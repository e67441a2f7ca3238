"""
Application Configuration

Centralised settings for the decision engine service.
Values can be overridden through environment variables prefixed with
``CDSS_`` or through the project-level .env file.
"""
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Paths ───────────────────────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# ── Load .env ───────────────────────────────────────────────────────────
load_dotenv(PROJECT_ROOT / ".env")


class Settings(BaseSettings):
    """Runtime settings for the MSK decision engine."""

    model_config = SettingsConfigDict(
        env_prefix="CDSS_",
        env_file=".env",
        extra="ignore",
    )

    app_name: str = "MSK Diagnosis Decision Engine"
    app_version: str = "1.0.0"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_file_format: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    log_color: Optional[bool] = None        # None: colour only when stdout is a terminal
    log_json: bool = False

    # Persistence boundary: how many times a contended write is re-read and
    # re-applied before giving up.
    max_write_retries: int = Field(default=3, ge=0, le=20)

    # ML bridge (stub only; no calls are made)
    ml_api_endpoint: str = "http://localhost:8000"
    ml_model_version: str = "pending"

    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


settings = Settings()
