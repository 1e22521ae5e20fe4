"""Configuration management with pydantic-settings and validation."""

from pydantic_settings import BaseSettings
from pydantic import field_validator


# Fields that are optional (the app starts without them)
OPTIONAL_FIELDS = {
    "walmart_client_id",
    "walmart_client_secret",
    "walmart_http_timeout",
    "token_encryption_key",
}

CLIENT_AUTH_METHODS = ("form", "basic")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    database_url: str

    # Walmart Marketplace API (optional; connect/refresh fail until set)
    walmart_client_id: str = ""
    walmart_client_secret: str = ""
    walmart_api_base_url: str = "https://marketplace.walmartapis.com"
    walmart_service_name: str = "Walmart Marketplace"
    walmart_scopes: str = "item orders inventory reports"
    walmart_client_auth: str = "form"
    walmart_http_timeout: float | None = None

    # Base64-encoded AES key shared with every other reader of walmart_tokens
    token_encryption_key: str = ""

    # Token lifecycle windows
    token_refresh_buffer_minutes: int = 5
    token_expiring_warning_minutes: int = 60

    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @field_validator("database_url", mode="before")
    @classmethod
    def fix_database_url(cls, v):
        """Heroku-style URLs use postgres:// but SQLAlchemy requires postgresql://."""
        if isinstance(v, str) and v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator("database_url", mode="before")
    @classmethod
    def check_not_empty(cls, v, info):
        """Validate that required environment variables are not empty."""
        if v is None:
            raise ValueError(f"Required environment variable {info.field_name} is not set")
        if isinstance(v, str) and v.strip() == "":
            raise ValueError(f"Required environment variable {info.field_name} is empty")
        return v

    @field_validator(*OPTIONAL_FIELDS, mode="before")
    @classmethod
    def blank_optional_to_default(cls, v, info):
        """Treat blank optional variables as unset."""
        if isinstance(v, str) and v.strip() == "":
            return None if info.field_name == "walmart_http_timeout" else ""
        return v

    @field_validator("walmart_client_auth")
    @classmethod
    def check_client_auth(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in CLIENT_AUTH_METHODS:
            raise ValueError(f"walmart_client_auth must be one of {CLIENT_AUTH_METHODS}, got {v!r}")
        return v

    @field_validator("walmart_api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def walmart_configured(self) -> bool:
        """Return True when both Walmart client credentials are present."""
        return bool(self.walmart_client_id and self.walmart_client_secret)


def get_settings() -> Settings:
    """Load and validate settings from environment.

    Raises:
        ValidationError: If required environment variables are missing or invalid.
    """
    return Settings()
