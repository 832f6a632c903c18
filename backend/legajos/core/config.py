"""
Legajos Toolkit Configuration

Configuration management with environment variable support.
Defaults follow the development profile; staging and production
profiles adjust cache and API settings unless set explicitly.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator, model_validator
from typing import Any, Dict
from functools import lru_cache
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


# Profile overrides applied when the variable is not provided explicitly
ENVIRONMENT_PROFILES: Dict[str, Dict[str, Any]] = {
    "development": {},
    "test": {},
    "staging": {
        "API_BASE_URL": "https://staging-api.ieric.com/v1",
        "API_TIMEOUT_SECONDS": 15.0,
        "RETRY_MAX_ATTEMPTS": 2,
        "CACHE_DEFAULT_TTL_SECONDS": 600.0,
        "CACHE_MAX_SIZE": 200,
        "CACHE_CLEANUP_INTERVAL_SECONDS": 900.0,
    },
    "production": {
        "API_BASE_URL": "https://api.ieric.com/v1",
        "API_TIMEOUT_SECONDS": 20.0,
        "RETRY_MAX_ATTEMPTS": 2,
        "CACHE_DEFAULT_TTL_SECONDS": 900.0,
        "CACHE_MAX_SIZE": 500,
        "CACHE_CLEANUP_INTERVAL_SECONDS": 1800.0,
        "LOG_LEVEL": "WARNING",
    },
}


class Settings(BaseSettings):
    """Toolkit settings with validation and sane defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_BUFFER_SIZE: int = Field(
        default=1000, ge=10, le=100000, description="In-memory log entries kept"
    )

    # Remote API
    API_BASE_URL: str = Field(
        default="https://localhost:44372/v1", description="Case API base URL"
    )
    API_TIMEOUT_SECONDS: float = Field(
        default=10.0, gt=0, le=300, description="Per-request timeout in seconds"
    )
    API_ACTAS_PATH: str = Field(default="/Acta/PorLegajo")
    API_ARTICULOS_PATH: str = Field(default="/LegajoArticulo/ById")
    API_HISTORIAL_ESTADOS_PATH: str = Field(
        default="/legajos/HistorialEstadosPorId"
    )
    API_HISTORIAL_GIROS_PATH: str = Field(default="/legajos/HistorialGirosPorId")

    # Cache
    CACHE_DEFAULT_TTL_SECONDS: float = Field(
        default=300.0, gt=0, description="Default cache entry TTL in seconds"
    )
    CACHE_MAX_SIZE: int = Field(
        default=100, ge=1, le=10000, description="Maximum cache entries"
    )
    CACHE_CLEANUP_INTERVAL_SECONDS: float = Field(
        default=600.0, gt=0, description="Expired entry sweep interval"
    )

    # Retry
    RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=1, le=20)
    RETRY_BASE_DELAY_SECONDS: float = Field(default=1.0, ge=0)
    RETRY_MAX_DELAY_SECONDS: float = Field(default=10.0, ge=0)
    RETRY_BACKOFF_MULTIPLIER: float = Field(default=2.0, ge=1.0)
    RETRY_JITTER: bool = Field(default=True)

    # Notifications
    NOTIFICATION_DEFAULT_DURATION_SECONDS: float = Field(default=5.0, ge=0)
    NOTIFICATION_MAX_COUNT: int = Field(default=5, ge=1, le=100)
    NOTIFICATION_DEDUPLICATE: bool = Field(default=False)

    # Progress tracking
    PROGRESS_MAX_TRACKERS: int = Field(default=10, ge=1, le=1000)
    PROGRESS_AUTO_CLEANUP: bool = Field(default=True)
    PROGRESS_CLEANUP_DELAY_SECONDS: float = Field(default=300.0, gt=0)
    PROGRESS_CLEANUP_INTERVAL_SECONDS: float = Field(default=30.0, gt=0)

    # Feature flags
    ENABLE_CACHE: bool = Field(default=True)
    ENABLE_RETRY: bool = Field(default=True)

    @model_validator(mode="before")
    @classmethod
    def apply_environment_profile(cls, data: Any) -> Any:
        """Fill unset values from the environment profile."""
        if not isinstance(data, dict):
            return data
        environment = data.get("ENVIRONMENT", "development")
        for key, value in ENVIRONMENT_PROFILES.get(environment, {}).items():
            data.setdefault(key, value)
        return data

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        allowed = list(ENVIRONMENT_PROFILES)
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @field_validator("API_BASE_URL")
    @classmethod
    def validate_api_base_url(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("API_BASE_URL must be an http(s) URL")
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_retry_delays(self) -> "Settings":
        if self.RETRY_MAX_DELAY_SECONDS < self.RETRY_BASE_DELAY_SECONDS:
            raise ValueError(
                "RETRY_MAX_DELAY_SECONDS must be >= RETRY_BASE_DELAY_SECONDS"
            )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
