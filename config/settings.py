"""Centralized configuration using pydantic-settings. All values are env-configurable."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TELEMETRY_")

    # Collector
    api_url: str = "http://localhost:5000/api"
    request_timeout_sec: float = 10.0
    beacon_timeout_sec: float = 2.0

    # Tracking pipeline
    flush_interval_sec: float = 5.0
    max_queue_size: int = 1000
    critical_event_types: tuple[str, ...] = ("purchase", "checkout_complete")
    scroll_thresholds: tuple[int, ...] = (25, 50, 75, 100)

    # Durable storage
    redis_url: str = "redis://localhost:6379/0"
    redis_pool_size: int = 10
    store_namespace: str = "telemetry"
    session_ttl_sec: int = 1800  # 30 minutes of inactivity

    # Dashboard
    dashboard_range_days: int = 30
    interactions_page_size: int = 20

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Monitoring
    log_level: str = "INFO"
