from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", env_file=".env")

    api_base_url: str = "http://api:8000"
    worker_interval_seconds: int = 900
    worker_output_dir: str = "/tmp/curator_collection"
    worker_max_results_per_query: int = Field(default=8, ge=1, le=50)
    worker_concurrency: int = Field(default=3, ge=1, le=20)
    # Comma-separated; earlier entries get higher priority.
    worker_queries: str = "typescript generics,react server components,next.js app router,python asyncio patterns"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
