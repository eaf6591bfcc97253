from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TRUSTED_DOMAINS = [
    "github.com",
    "stackoverflow.com",
    "qiita.com",
    "zenn.dev",
    "dev.to",
    "medium.com",
    "react.dev",
    "nextjs.org",
    "typescript.org",
]


class FeedSource(BaseModel):
    name: str
    url: str
    category: str = "tech"
    active: bool = True


DEFAULT_RSS_FEEDS = [
    FeedSource(name="DEV Community", url="https://dev.to/feed", category="tech"),
    FeedSource(name="Hacker News", url="https://news.ycombinator.com/rss", category="tech"),
    FeedSource(name="React Blog", url="https://react.dev/blog/rss.xml", category="react"),
    FeedSource(name="Next.js Blog", url="https://nextjs.org/feed.xml", category="nextjs"),
    FeedSource(name="CSS-Tricks", url="https://css-tricks.com/feed/", category="webdev"),
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore", env_file=".env")

    app_name: str = "Content Curator API"
    cors_origin: str = "http://localhost:3000"

    log_level: str = "INFO"
    log_json: bool = True

    # Provider credentials. A provider whose keys are blank is skipped, never an error.
    google_cse_api_key: str = ""
    google_cse_cx: str = ""
    serpapi_api_key: str = ""
    news_api_key: str = ""
    github_token: str = ""

    google_cse_base_url: str = "https://www.googleapis.com/customsearch/v1"
    serpapi_base_url: str = "https://serpapi.com/search"
    duckduckgo_base_url: str = "https://api.duckduckgo.com/"
    news_api_base_url: str = "https://newsapi.org/v2"
    github_base_url: str = "https://api.github.com"
    # Empty disables the self-hosted SearXNG provider.
    searxng_base_url: str = ""
    searxng_engines: str = "duckduckgo,brave,bing"
    user_agent: str = "ContentCurator/1.0"

    rss_feeds: list[FeedSource] = Field(default_factory=lambda: list(DEFAULT_RSS_FEEDS))

    request_timeout_seconds: float = Field(default=10.0, gt=0, le=120)

    google_rate_limit_max: int = Field(default=100, ge=1)
    google_rate_limit_window_seconds: float = Field(default=24 * 60 * 60, gt=0)
    serpapi_rate_limit_max: int = Field(default=100, ge=1)
    serpapi_rate_limit_window_seconds: float = Field(default=60 * 60, gt=0)
    searxng_rate_limit_max: int = Field(default=60, ge=1)
    searxng_rate_limit_window_seconds: float = Field(default=60, gt=0)
    duckduckgo_rate_limit_max: int = Field(default=30, ge=1)
    duckduckgo_rate_limit_window_seconds: float = Field(default=60, gt=0)
    news_rate_limit_max: int = Field(default=1000, ge=1)
    news_rate_limit_window_seconds: float = Field(default=24 * 60 * 60, gt=0)
    github_rate_limit_max: int = Field(default=60, ge=1)
    github_rate_limit_window_seconds: float = Field(default=60 * 60, gt=0)
    rss_rate_limit_max: int = Field(default=30, ge=1)
    rss_rate_limit_window_seconds: float = Field(default=60, gt=0)

    rate_limit_retention_seconds: float = Field(default=60 * 60, gt=0)
    rate_limit_cleanup_interval_seconds: float = Field(default=300, gt=0)

    batch_concurrency: int = Field(default=3, ge=1, le=20)
    batch_pause_seconds: float = Field(default=1.0, ge=0, le=60)
    default_max_results_per_query: int = Field(default=8, ge=1, le=50)

    search_language: str = "ja"
    search_region: str = "JP"
    # d1 = past day, w1 = past week, m1 = past month.
    search_date_restrict: str = "m1"

    trusted_domains: list[str] = Field(default_factory=lambda: list(DEFAULT_TRUSTED_DOMAINS))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
