"""Tracionar — Central Configuration via Pydantic Settings."""

import os
from pydantic import field_validator
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Meta API ──
    meta_app_id: str = ""
    meta_app_secret: str = ""
    meta_redirect_uri: str = ""
    meta_api_version: str = "v18.0"
    meta_base_url: str = "https://graph.facebook.com"
    meta_page_size: int = 500  # Meta caps list endpoints at 500 per call
    meta_request_timeout: float = 30.0

    # ── Database ──
    database_url: str = ""

    # ── Credential Vault ──
    token_encryption_secret: str = ""
    token_encryption_salt: str = "tracionar-salt"

    # ── AI Providers ──
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4"
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-sonnet-4-20250514"
    sarvam_api_key: Optional[str] = None
    default_ai_provider: str = "openai"  # openai | claude | sarvam
    insight_cache_ttl_seconds: int = 3600

    # ── App ──
    log_level: str = "INFO"
    log_format: str = "json"  # json | text
    scheduler_enabled: bool = True
    daily_sync_hour: int = 3  # Daily incremental sync at 3 AM UTC
    sync_serialize_per_account: bool = True

    @field_validator("meta_page_size")
    @classmethod
    def _page_size_within_meta_limit(cls, value: int) -> int:
        if not 1 <= value <= 500:
            raise ValueError("meta_page_size must be between 1 and 500")
        return value

    @property
    def meta_graph_url(self) -> str:
        return f"{self.meta_base_url}/{self.meta_api_version}"

    @property
    def effective_database_url(self) -> str:
        """Return PostgreSQL URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            # SQLAlchemy only accepts the postgresql:// scheme
            if self.database_url.startswith("postgres://"):
                return "postgresql://" + self.database_url[len("postgres://"):]
            return self.database_url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/tracionar.db"
        return "sqlite:///./tracionar.db"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
