from __future__ import annotations

from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_env: str = Field(default="dev", alias="APP_ENV")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=3000, alias="APP_PORT")
    # NOTE: Keep as string to avoid pydantic-settings JSON-decoding complex types from .env.
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    llm_provider: str = Field(default="gemini", alias="LLM_PROVIDER")
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com", alias="GEMINI_BASE_URL"
    )
    gemini_model: str = Field(default="gemini-2.5-flash", alias="GEMINI_MODEL")
    llm_timeout_sec: float = Field(default=90, alias="LLM_TIMEOUT_SEC")
    narration_language: str = Field(default="Sinhala", alias="NARRATION_LANGUAGE")

    listings_base_url: str = Field(default="https://riyasewana.com", alias="LISTINGS_BASE_URL")
    listings_timeout_sec: float = Field(default=30, alias="LISTINGS_TIMEOUT_SEC")
    detail_limit: int = Field(default=3, ge=0, alias="DETAIL_LIMIT")
    detail_fetch_interval_sec: float = Field(default=1.0, ge=0, alias="DETAIL_FETCH_INTERVAL_SEC")

    vehicle_detail_delay_sec: float = Field(default=0.5, ge=0, alias="VEHICLE_DETAIL_DELAY_SEC")
    stream_delay_min_sec: float = Field(default=0.04, ge=0, alias="STREAM_DELAY_MIN_SEC")
    stream_delay_max_sec: float = Field(default=0.10, ge=0, alias="STREAM_DELAY_MAX_SEC")
    recommendation_delay_min_sec: float = Field(
        default=0.03, ge=0, alias="RECOMMENDATION_DELAY_MIN_SEC"
    )
    recommendation_delay_max_sec: float = Field(
        default=0.08, ge=0, alias="RECOMMENDATION_DELAY_MAX_SEC"
    )

    model_config = SettingsConfigDict(env_file=(".env", "backend/.env"), extra="ignore")

    def parsed_cors_origins(self) -> List[str]:
        """Return CORS origins parsed from env var.

        Supports comma-delimited strings (recommended) and JSON list strings.
        """

        raw = (self.cors_origins or "").strip()
        if not raw:
            return []
        if raw.startswith("["):
            try:
                import json

                value: Any = json.loads(raw)
                if isinstance(value, list):
                    items = [str(item).strip() for item in value]
                    return [item for item in items if item]
            except ValueError:
                pass
        return [item.strip() for item in raw.split(",") if item.strip()]

    def delay_window(self, chunk_type: str) -> tuple[float, float]:
        """Return the (min, max) pacing window for a streamed chunk type."""

        if chunk_type == "recommendation_chunk":
            low, high = self.recommendation_delay_min_sec, self.recommendation_delay_max_sec
        else:
            low, high = self.stream_delay_min_sec, self.stream_delay_max_sec
        return low, max(low, high)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings()
