"""
Shared configuration management for the Vara catalog backend.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="VARA_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = "local"
    log_level: str = "info"
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    # Document store
    document_store: str = "mongo"
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_database: str = "vara"

    # Object store (S3-compatible)
    s3_bucket: str = "vara-music"
    s3_endpoint_url: Optional[str] = None
    s3_region: Optional[str] = None
    s3_public_base_url: str = "http://localhost:9000/vara-music"
    s3_delete_attempts: int = 3

    # Auth
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 60
    registration_enabled: bool = True

    # Response caching (seconds)
    reference_cache_ttl: int = 300
    reference_max_age: int = 600
    recommendations_cache_ttl: int = 30
    recommendations_max_age: int = 60
    recommendations_limit: int = 20


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
