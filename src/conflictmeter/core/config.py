from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FEED_URLS = [
    # General conflict/military tension
    "https://news.google.com/rss/search?q=war+OR+conflict+OR+nuclear+OR+military+OR+tension+OR+crisis+OR+iran+OR+china+OR+russia+OR+usa&hl=en&gl=US&ceid=US:en",
    # Russia-Ukraine
    "https://news.google.com/rss/search?q=ukraine+russia+war+OR+invasion&hl=en&gl=US&ceid=US:en",
    # Israel-Iran
    "https://news.google.com/rss/search?q=israel+iran+war+OR+conflict+OR+missile+OR+nuclear&hl=en&gl=US&ceid=US:en",
    # Taiwan-China
    "https://news.google.com/rss/search?q=taiwan+china+military+OR+conflict+OR+war&hl=en&gl=US&ceid=US:en",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    conflictmeter_env: Literal["dev", "prod", "test"] = "dev"
    database_url: str = "sqlite:///conflictmeter.db"
    log_level: str = "INFO"

    feed_urls: list[str] = Field(default_factory=lambda: list(DEFAULT_FEED_URLS))
    feed_timeout_seconds: float = Field(default=15.0, gt=0.0, le=120.0)
    max_headlines: int = Field(default=20, ge=1, le=200)

    cache_backend: Literal["memory", "sql"] = "sql"
    cache_key_prefix: str = "ww3"
    cache_ttl_seconds: int = Field(default=900, ge=1, le=86400)
    cache_retention_seconds: int = Field(default=86400, ge=1, le=30 * 86400)
    stale_while_revalidate_seconds: int = Field(default=60, ge=0, le=86400)

    estimator_provider: Literal["mock", "openai"] = "mock"
    estimator_model: str = "gpt-4.1-mini"
    estimator_max_tokens: int = Field(default=280, ge=16, le=4096)
    estimator_temperature: float = Field(default=0.12, ge=0.0, le=2.0)
    estimator_timeout_seconds: float = Field(default=30.0, gt=0.0, le=300.0)
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"

    # Heuristic calibration
    heuristic_ceiling: float = Field(default=100.0, ge=1.0, le=100.0)
    multi_hotspot_floor: float = Field(default=40.0, ge=0.0, le=100.0)

    # Blending and output invariants
    agreement_threshold: float = Field(default=30.0, ge=0.0, le=100.0)
    heuristic_weight: float = Field(default=0.6, ge=0.0, le=1.0)
    extreme_score_threshold: float = Field(default=85.0, ge=0.0, le=100.0)
    disagreement_ceiling: float = Field(default=70.0, ge=0.0, le=100.0)
    safety_rail_threshold: float = Field(default=90.0, ge=0.0, le=100.0)
    safety_rail_cap: float = Field(default=89.0, ge=0.0, le=100.0)
    single_hotspot_floor: float = Field(default=25.0, ge=0.0, le=100.0)

    api_host: str = "127.0.0.1"
    api_port: int = Field(default=8000, ge=1, le=65535)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
