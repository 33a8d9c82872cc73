"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fietsroute.schemas.routing import BikeType, RoutePreferences


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Defaults are suitable for local development: a SQLite database next to
    the working directory and routing services on localhost.
    """

    # Application
    app_name: str = "FietsRoute API"
    app_env: str = Field(default="development", description="Environment: development, staging, production")
    debug: bool = False

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./fietsroute.db",
        description="Async SQLAlchemy connection URL for saved routes.",
    )

    # OpenRouteService (primary cycling directions)
    ors_base_url: str = "https://api.openrouteservice.org"
    ors_api_key: Optional[str] = Field(
        default=None,
        description="OpenRouteService API key. Without it the provider is skipped.",
    )

    # Valhalla Routing Engine (fallback)
    valhalla_url: str = "http://localhost:8002"

    # Provider chain
    provider_timeout_seconds: float = Field(default=15.0, gt=0, description="Per-provider call timeout")
    offline_only: bool = Field(default=False, description="Only use the offline estimator")

    # Saved routes
    migrate_routes_on_startup: bool = Field(default=True, description="Rewrite legacy saved routes at startup")

    # Default route request options
    bike_type: BikeType = BikeType.CITY
    avoid_highways: bool = True
    avoid_tunnels: bool = False
    prefer_bike_paths: bool = True
    prefer_nature: bool = False
    max_distance_km: float = 50.0
    max_elevation_m: float = 200.0

    # Route cache and working set
    cache_capacity: int = Field(default=10, ge=1)
    cache_max_age_hours: float = Field(default=24.0, gt=0)
    cache_match_radius_meters: float = Field(default=1000.0, gt=0)
    working_set_limit: int = Field(default=3, ge=1)
    polyline_max_points: int = Field(default=300, ge=2)

    # CORS - Restrict in production
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:3000"]
    cors_allow_methods: List[str] = ["GET", "POST", "DELETE", "OPTIONS"]
    cors_allow_headers: List[str] = ["Content-Type", "X-Request-ID"]

    # Logging
    log_level: str = "INFO"
    log_requests: bool = True
    slow_request_ms: float = Field(default=2000.0, gt=0, description="Requests slower than this are logged as warnings")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept standard logging level names only."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    def route_preferences(self) -> RoutePreferences:
        """Default preferences for requests that do not carry their own."""
        return RoutePreferences(
            avoid_highways=self.avoid_highways,
            avoid_tunnels=self.avoid_tunnels,
            prefer_bike_paths=self.prefer_bike_paths,
            prefer_nature=self.prefer_nature,
            max_distance_km=self.max_distance_km,
            max_elevation_m=self.max_elevation_m,
        )

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"

    def validate_production_settings(self) -> List[str]:
        """Validate settings are safe for production. Returns list of errors."""
        errors = []

        if self.is_production():
            if self.debug:
                errors.append("DEBUG must be False in production")

            if not self.ors_api_key and not self.offline_only:
                errors.append("ORS_API_KEY is not set; routing falls back to Valhalla and offline estimates")

            if any("localhost" in origin for origin in self.cors_origins):
                errors.append("CORS_ORIGINS should not include localhost in production")

        return errors


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
