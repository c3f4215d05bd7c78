"""
Configuration module with strict validation.

Key principles:
- APP STARTUP does NOT require NOTION_TOKEN
- Talking to the content store DOES require the token (fails early with clear error)
- Concurrency and pacing for both the store and image downloads are configurable
- Safe defaults for all optional settings
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from estate_sync.core.api_errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings with validation.

    Loads from environment variables and .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Content store (OPTIONAL for startup, REQUIRED for fetching)
    notion_token: Optional[str] = Field(
        default=None,
        description="Notion integration token - required only for real fetches"
    )

    notion_api_version: str = Field(
        default="2022-06-28",
        description="Value sent in the Notion-Version header"
    )

    notion_properties_db_id: str = Field(default="", description="Listings database")
    notion_amenities_db_id: str = Field(default="", description="Amenities database")
    notion_nearby_locations_db_id: str = Field(
        default="", description="Nearby locations database"
    )
    notion_virtual_tour_scenes_db_id: str = Field(
        default="", description="Virtual tour scenes database"
    )

    # Local image storage
    images_dir: str = Field(
        default="public/images/notion",
        description="Directory mirrored images are written to"
    )

    images_url_prefix: str = Field(
        default="/images/notion",
        description="Prefix of the local references returned for mirrored images"
    )

    placeholder_image: str = Field(
        default="/images/img-placeholder.webp",
        description="Reference substituted when an image cannot be resolved"
    )

    # Rate Limiting and Concurrency
    max_concurrency: int = Field(
        default=3,
        ge=1,
        le=50,
        description="Maximum concurrent requests to the content store"
    )

    max_requests_per_second: float = Field(
        default=3.0,
        ge=0.1,
        le=100.0,
        description="Maximum content store requests per second"
    )

    max_concurrent_downloads: int = Field(
        default=8,
        ge=1,
        le=100,
        description="Maximum simultaneous image downloads"
    )

    request_timeout: float = Field(default=30.0, gt=0)
    download_timeout: float = Field(default=120.0, gt=0)

    # Export
    export_dir: str = Field(
        default="notion-exports",
        description="Directory the batch export writes JSON files to"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    @field_validator("images_url_prefix")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") or "/"

    def require_notion_token(self) -> str:
        """
        Get the Notion token, raising clear error if missing.

        Call this before creating a client that talks to the real store.

        Raises:
            ConfigurationError: If the token is not configured

        Returns:
            str: The token
        """
        if not self.notion_token:
            raise ConfigurationError(
                "NOTION_TOKEN is required to query the content store. "
                "Please set it in your .env file or environment variables. "
                "Create an integration at: https://www.notion.so/my-integrations",
                source="notion",
                missing_config="NOTION_TOKEN",
            )
        return self.notion_token

    @property
    def database_ids(self) -> dict:
        """Collection name -> database id."""
        return {
            "properties": self.notion_properties_db_id,
            "amenities": self.notion_amenities_db_id,
            "nearby_locations": self.notion_nearby_locations_db_id,
            "virtual_tour_scenes": self.notion_virtual_tour_scenes_db_id,
        }


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    This pattern allows:
    - Easy testing (can reset settings between tests)
    - Lazy loading (only loads when first accessed)
    - Singleton pattern (same instance used everywhere)
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings singleton (used by tests)."""
    global _settings
    _settings = None
