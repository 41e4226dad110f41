from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeocoderSettings(BaseSettings):
    base_url: str = "https://nominatim.openstreetmap.org"
    user_agent: str = "triply/0.1"
    language: str = "ar"
    timeout: float = Field(default=5.0, gt=0.0, le=60.0)
    search_limit: int = Field(default=5, ge=1, le=5)
    min_query_length: int = Field(default=3, ge=1)
    debounce_seconds: float = Field(
        default=0.5,
        gt=0.0,
        le=5.0,
        description="Input inactivity required before a search request is issued",
    )

    model_config = SettingsConfigDict(env_prefix="GEOCODER_")

    @field_validator("base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Geocoder base URL must start with http:// or https://")
        return v.rstrip("/")


class LocationSettings(BaseSettings):
    fix_timeout_seconds: float = Field(
        default=8.0,
        gt=0.0,
        le=60.0,
        description="Time allowed for acquiring a fresh platform position fix",
    )

    model_config = SettingsConfigDict(env_prefix="LOCATION_")


class OSRMSettings(BaseSettings):
    base_url: str = "https://router.project-osrm.org"
    timeout: float = Field(default=5.0, gt=0.0, le=60.0)

    # OSRM retry configuration
    max_retries: int = Field(default=3, ge=1, le=10)
    retry_base_delay: float = Field(default=0.5, ge=0.1, le=5.0)
    retry_multiplier: float = Field(default=2.0, ge=1.0, le=5.0)

    model_config = SettingsConfigDict(env_prefix="OSRM_")

    @field_validator("base_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("OSRM base URL must start with http:// or https://")
        return v.rstrip("/")


class SuggestionSettings(BaseSettings):
    # No key means suggestions are disabled, never an error.
    api_key: str = ""
    model: str = "gemini-2.5-flash"
    suggestion_count: int = Field(default=2, ge=0, le=10)
    recent_trip_count: int = Field(default=2, ge=0, le=20)
    saved_place_count: int = Field(default=2, ge=0, le=50)

    model_config = SettingsConfigDict(env_prefix="GEMINI_")


class RedisSettings(BaseSettings):
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str = ""
    ssl: bool = False

    model_config = SettingsConfigDict(env_prefix="REDIS_")


class LoggingSettings(BaseSettings):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["text", "json"] = "text"
    environment: str = "development"

    model_config = SettingsConfigDict(env_prefix="LOG_")


class Settings(BaseSettings):
    geocoder: GeocoderSettings = Field(default_factory=GeocoderSettings)
    location: LocationSettings = Field(default_factory=LocationSettings)
    osrm: OSRMSettings = Field(default_factory=OSRMSettings)
    suggestions: SuggestionSettings = Field(default_factory=SuggestionSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    return Settings()
