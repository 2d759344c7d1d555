from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic.aliases import AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=BACKEND_DIR / ".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = Field(
        default="sqlite+pysqlite:///./placement.db",
        validation_alias=AliasChoices("database_url", "DATABASE_URL"),
    )

    # Runtime
    environment: str = Field(default="development", validation_alias=AliasChoices("environment", "ENVIRONMENT"))
    frontend_origin: str = Field(
        default="http://localhost:5173",
        validation_alias=AliasChoices("frontend_origin", "FRONTEND_ORIGIN"),
    )

    # Placement engine defaults
    default_fallback_strategy: str = Field(
        default="strict",
        validation_alias=AliasChoices("default_fallback_strategy", "DEFAULT_FALLBACK_STRATEGY"),
    )
    # Per (show, day) cap used when a request allows multiples but doesn't name a cap.
    multi_spot_default_cap: int = Field(
        default=3,
        ge=1,
        validation_alias=AliasChoices("multi_spot_default_cap", "MULTI_SPOT_DEFAULT_CAP"),
    )
    conflict_display_limit: int = Field(
        default=100,
        ge=0,
        validation_alias=AliasChoices("conflict_display_limit", "CONFLICT_DISPLAY_LIMIT"),
    )
    max_planning_days: int = Field(
        default=366,
        ge=1,
        validation_alias=AliasChoices("max_planning_days", "MAX_PLANNING_DAYS"),
    )

    @field_validator("frontend_origin")
    @classmethod
    def _normalize_frontend_origin(cls, v: str) -> str:
        # Starlette CORS expects the Origin to match exactly (no trailing slash).
        return v.strip().rstrip("/")

    @field_validator("default_fallback_strategy")
    @classmethod
    def _normalize_fallback_strategy(cls, v: str) -> str:
        v = (v or "strict").strip().lower()
        if v not in {"strict", "relaxed", "fill_anywhere"}:
            raise ValueError("DEFAULT_FALLBACK_STRATEGY must be 'strict', 'relaxed', or 'fill_anywhere'")
        return v


settings = Settings()
