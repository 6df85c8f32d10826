"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with EVCHARGE_ prefix.
Env vars only, no config files (12-factor app style).

Learn: Components never read this module directly. The entry point
builds a RealtimeContext from a Settings instance and hands the pieces
each component needs to its constructor.
"""

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All pipeline configuration. Set via EVCHARGE_* env vars."""

    # Document store
    mongodb_url: str = "mongodb://localhost:27017/?replicaSet=rs0"
    mongodb_database: str = "ev_charging"
    mongodb_server_selection_timeout_ms: int = 5000

    # Broker: an empty URL means real-time runs in fallback (no-op) mode
    redis_url: str = "redis://localhost:6379/0"
    redis_connect_timeout_seconds: float = 5.0

    # Real-time fan-out
    broadcast_channel: str = "client_activity_channel"
    tracked_collections: list[str] = [
        "clients",
        "stations",
        "charging_sessions",
        "payments",
        "eco_stats",
    ]
    require_all_watchers: bool = False

    # Dashboard stats
    stats_cache_key: str = "dashboard_stats"
    stats_interval_seconds: float = 30.0
    stats_cache_ttl_seconds: int = 300
    stats_read_timeout_seconds: float = 3.0

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:3002",
    ]

    model_config = {"env_prefix": "EVCHARGE_"}

    @model_validator(mode="after")
    def validate_stats_timing(self):
        """A missed cycle must still serve stale stats, not a cache miss."""
        if self.stats_cache_ttl_seconds <= self.stats_interval_seconds:
            raise ValueError(
                "EVCHARGE_STATS_CACHE_TTL_SECONDS must be longer than "
                "EVCHARGE_STATS_INTERVAL_SECONDS"
            )
        return self

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


# Loaded once by the entry points (app lifespan, pipeline process)
settings = Settings()
