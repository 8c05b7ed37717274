"""
API configuration settings.
"""

from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """API configuration settings."""

    # API Settings
    api_title: str = "Book API"
    api_version: str = "1.0.0"
    api_description: str = (
        "CRUD REST API for book records with role-based access control.\n\n"
        "All book endpoints require a bearer token whose roles claim grants "
        "`USER` (list, get, create) or `ADMIN` (also update and delete)."
    )

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Storage Settings
    storage_backend: str = "mongodb"  # mongodb or memory
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "book_api"
    mongodb_collection: str = "books"
    mongodb_counters_collection: str = "counters"

    # Security Settings
    secret_key: str = "your-secret-key-change-in-production"
    allowed_algorithms: List[str] = ["HS256", "HS384", "HS512"]
    roles_claim: str = "roles"
    token_issuer: Optional[str] = None
    token_audience: Optional[str] = None

    # CORS Settings
    cors_origins: list = ["*"]  # Configure appropriately for production
    cors_allow_credentials: bool = True
    cors_allow_methods: list = ["*"]
    cors_allow_headers: list = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "extra": "ignore"  # Ignore extra fields from .env
    }

    @field_validator('storage_backend')
    @classmethod
    def validate_storage_backend(cls, v):
        """Ensure the storage backend is supported."""
        valid_backends = ['mongodb', 'memory']
        if v.lower() not in valid_backends:
            raise ValueError(f'storage_backend must be one of: {valid_backends}')
        return v.lower()

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()


# Global config instance
config = APIConfig()
