"""
Configuration and settings for the functions playground.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/functions/v1")
    log_level: str = Field(default="INFO")

    # Hosted platform (SUPABASE_URL, SUPABASE_ANON_KEY, ...)
    supabase_url: Optional[str] = Field(default=None)
    supabase_anon_key: Optional[str] = Field(default=None)
    sb_publishable_key: Optional[str] = Field(default=None)
    supabase_service_role_key: Optional[str] = Field(default=None)

    # Direct SQL access (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # S3-compatible storage for signed uploads
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)

    default_upload_bucket: str = Field(default="test-uploads")
    default_user_id: str = Field(default="00000000-0000-0000-0000-000000000001")

    # Signed URLs minted inside the local stack point at the gateway container.
    internal_api_url: str = Field(default="http://kong:8000")
    public_api_url: str = Field(default="http://localhost:54321")

    cors_custom_origin: str = Field(default="https://myapp.com")
    cors_allowed_origins: list[str] = Field(
        default_factory=lambda: [
            "https://app1.com",
            "https://app2.com",
            "https://staging.myapp.com",
        ]
    )

    @property
    def client_key(self) -> Optional[str]:
        """Key used for user-facing clients: publishable key, else anon key."""
        return self.sb_publishable_key or self.supabase_anon_key


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
