import json
import os
from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings


PROJECT_ROOT = Path(__file__).resolve().parent.parent
LOCAL_ENV_FILE = PROJECT_ROOT / ".env.local"

if LOCAL_ENV_FILE.exists():
    load_dotenv(LOCAL_ENV_FILE, override=True)


class Settings(BaseSettings):
    class Config:
        env_file = ".env"
        extra = "ignore"
    database_url: str = "sqlite:///./killscale.db"
    database_public_url: str = ""
    environment: str = "development"
    frontend_base_url: str = Field(default="http://localhost:3000")
    additional_cors_origins: str | None = Field(default=None)

    # Meta Graph API
    meta_graph_api_version: str = Field(default="v18.0")
    meta_request_timeout_seconds: float = Field(default=30.0)
    meta_rate_limit_max_retries: int = Field(default=3)
    meta_rate_limit_backoff_ms: int = Field(default=1000)

    # Bulk operation pacing
    bulk_status_batch_size: int = Field(default=10)
    bulk_status_batch_delay_ms: int = Field(default=100)
    bulk_delete_delay_ms: int = Field(default=150)
    bulk_budget_batch_size: int = Field(default=5)
    bulk_budget_batch_delay_ms: int = Field(default=200)
    duplicate_child_delay_ms: int = Field(default=100)
    status_cascade_delay_ms: int = Field(default=300)
    utm_sync_batch_size: int = Field(default=50)

    # AI insights
    anthropic_api_key: str | None = Field(default=None)
    anthropic_model: str = Field(default="claude-sonnet-4-20250514")
    insights_max_tokens: int = Field(default=1500)

    # Dashboard client
    api_base_url: str = Field(default="http://localhost:8000")
    launch_duplicate_delay_ms: int = Field(default=200)
    utm_cache_ttl_seconds: int = Field(default=5 * 60)  # 5 minutes
    insights_cache_ttl_seconds: int = Field(default=24 * 60 * 60)  # 24 hours
    insights_min_spend: float = Field(default=50.0)
    local_store_path: str = Field(default="./.killscale_store.json")

    def get_database_url(self) -> str:
        """
        Get the appropriate database URL.
        Prefers DATABASE_PUBLIC_URL when set (external access from a dev machine).
        """
        public_url = os.getenv('DATABASE_PUBLIC_URL') or self.database_public_url
        internal_url = os.getenv('DATABASE_URL') or self.database_url

        if public_url:
            return public_url
        return internal_url

    @property
    def meta_graph_api_base(self) -> str:
        return f"https://graph.facebook.com/{self.meta_graph_api_version}"

    def get_additional_cors_origins(self) -> list[str]:
        value = self.additional_cors_origins
        if not value:
            return []

        stripped = value.strip()
        if not stripped:
            return []
        if stripped.startswith("[") and stripped.endswith("]"):
            try:
                parsed = json.loads(stripped)
                if isinstance(parsed, list):
                    return [
                        str(origin).strip()
                        for origin in parsed
                        if str(origin).strip()
                    ]
            except json.JSONDecodeError:
                pass
        return [item.strip() for item in stripped.split(",") if item.strip()]


def _is_valid_origin(origin: str) -> bool:
    parsed = urlparse(origin)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def get_cors_origins(settings: Settings) -> list[str]:
    """Frontend origin plus any additional origins, deduplicated, invalid ones dropped."""
    origins: list[str] = []
    candidates = [settings.frontend_base_url, *settings.get_additional_cors_origins()]
    for origin in candidates:
        if not origin:
            continue
        origin = origin.rstrip("/")
        if _is_valid_origin(origin) and origin not in origins:
            origins.append(origin)
    return origins


@lru_cache()
def get_settings():
    return Settings()
