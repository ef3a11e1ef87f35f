"""Application configuration and settings management."""

from typing import Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Rider Dispatch API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level.")
    cors_allowed_origins: tuple[str, ...] = Field(
        default=("*",),
        description="Value(s) sent in Access-Control-Allow-Origin.",
    )
    cors_allowed_headers: tuple[str, ...] = Field(
        default=("authorization", "x-client-info", "apikey", "content-type"),
        description="Request headers browser clients may send.",
    )

    # Dispatch tuning
    average_speed_kmh: float = Field(default=20.0, gt=0.0, description="Assumed rider speed for ETA.")
    online_window_minutes: float = Field(
        default=10.0,
        gt=0.0,
        description="A rider is online if their last location is newer than this.",
    )
    default_eta_minutes: int = Field(
        default=15,
        ge=0,
        description="ETA used when the rider has no known location.",
    )
    default_radius_km: float = Field(default=10.0, gt=0.0)
    default_rejection_reason: str = "No reason given"

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("cors_allowed_origins", "cors_allowed_headers", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
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


settings = Settings()
