import yaml
import os
from pathlib import Path
from pydantic import BaseModel, Field
from typing import Optional, Dict, List
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

from backend.app.core.logging_config import setup_logging

load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000


class UpstreamConfig(BaseModel):
    base_url: str = Field(
        default_factory=lambda: os.environ.get("UPSTREAM_API_URL", "")
    )
    review_feed_path: str = "/wp-json/qualitour/v1/google-reviews"
    user_agent: str = "Mozilla/5.0 (compatible; TourContentGateway/1.0)"
    timeout_seconds: float = 10.0
    default_language: str = "en"
    auth_user: str = Field(
        default_factory=lambda: os.environ.get("UPSTREAM_AUTH_USER", "")
    )
    auth_pass: str = Field(
        default_factory=lambda: os.environ.get("UPSTREAM_AUTH_PASS", "")
    )


class CacheConfig(BaseModel):
    capacity: int = 500
    # None means "until explicit invalidation"
    default_ttl_seconds: Optional[float] = None


class TopicsConfig(BaseModel):
    taxonomy: str = "tour-destination"
    keywords: Dict[str, List[str]] = Field(default_factory=dict)
    related: Dict[str, List[str]] = Field(default_factory=dict)
    search_per_page: int = 100


class TourTypeConfig(BaseModel):
    label: str
    description: str = ""
    activity: Optional[int] = None
    keywords: List[str] = Field(default_factory=list)
    exclude_keywords: List[str] = Field(default_factory=list)
    title_keywords: List[str] = Field(default_factory=list)


class DurationConfig(BaseModel):
    label: str
    description: str = ""
    min_days: int
    max_days: Optional[int] = None


class ReviewsConfig(BaseModel):
    locale_keywords: Dict[str, List[str]] = Field(default_factory=dict)
    min_rating: int = 4
    hit_weight: float = 100.0
    rating_weight: float = 20.0
    length_cap: int = 400
    length_divisor: float = Field(10.0, gt=0)
    recency_weight: float = 1.0
    recency_window_days: float = Field(365.0, gt=0)
    max_count: int = 6


class LoggingConfig(BaseModel):
    level: str = "INFO"
    console_enabled: bool = True
    console_level: str = "DEBUG"
    file_enabled: bool = True
    file_path: str = "logs/app.log"
    file_level: str = "INFO"
    rotation: str = "10 MB"
    retention: str = "7 days"
    format: str = (
        "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"
    )


class Settings(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    # endpoint prefix -> seconds; null entries are cached until invalidated
    freshness: Dict[str, Optional[float]] = Field(default_factory=dict)
    topics: TopicsConfig = Field(default_factory=TopicsConfig)
    tour_types: Dict[str, TourTypeConfig] = Field(default_factory=dict)
    durations: Dict[str, DurationConfig] = Field(default_factory=dict)
    reviews: ReviewsConfig = Field(default_factory=ReviewsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_file_path: Optional[Path] = None) -> Settings:
    config_file_path = config_file_path or PROJECT_ROOT / "config" / "settings.yaml"

    config_data = {}
    if config_file_path.exists():
        with open(config_file_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}

    # Env wins over the YAML value for the upstream location and credentials.
    upstream_data = config_data.setdefault("upstream", {}) or {}
    config_data["upstream"] = upstream_data
    for key, env_name in (
        ("base_url", "UPSTREAM_API_URL"),
        ("auth_user", "UPSTREAM_AUTH_USER"),
        ("auth_pass", "UPSTREAM_AUTH_PASS"),
    ):
        if os.environ.get(env_name):
            upstream_data[key] = os.environ[env_name]

    loaded_settings = Settings(**config_data)

    setup_logging(loaded_settings.logging.model_dump(), PROJECT_ROOT)

    return loaded_settings


settings = load_config()
