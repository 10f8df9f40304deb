"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="HAILCRM_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Hail CRM Offline API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level.")
    data_root: Path = Field(default=Path("data"), description="Root directory for local persistent storage.")
    queue_db_file: Path = Field(
        default=Path("data/offline_queue.sqlite3"),
        description="SQLite database holding records captured while offline.",
    )
    cache_root: Path = Field(
        default=Path("data/cache"),
        description="Directory owned by the background cache worker.",
    )
    cache_version: str = Field(default="hail-crm-v1", description="Prefix for cache bucket names.")
    worker_timeout_seconds: float = Field(default=10.0, gt=0.0)
    max_sync_attempts: int = Field(
        default=10,
        ge=0,
        description="Failed sync attempts before a record is dead-lettered (0 disables).",
    )
    auto_sync_delay_seconds: float = Field(default=1.0, ge=0.0)
    id_map_retention_days: float = Field(
        default=30.0,
        ge=0.0,
        description="Days an unreferenced offline-id to remote-id mapping is kept after its lead synced.",
    )
    connectivity_url: Optional[str] = Field(
        default=None,
        description="URL probed to detect connectivity. Falls back to the Supabase URL.",
    )
    connectivity_poll_seconds: float = Field(default=15.0, gt=0.0)
    connectivity_timeout_seconds: float = Field(default=5.0, gt=0.0)
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase key used for lead and follow-up writes.",
    )

    @field_validator("data_root", "queue_db_file", "cache_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @property
    def probe_url(self) -> Optional[str]:
        return self.connectivity_url or self.supabase_url


settings = Settings()
