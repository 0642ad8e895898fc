"""Application configuration using pydantic-settings."""
from functools import lru_cache
from urllib.parse import urlparse

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

API_VERSION = "0.1.0"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str
    db_pool_size: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")

    # Auth0
    auth0_domain: str = Field(default="", validation_alias="AUTH0_DOMAIN")
    auth0_audience: str = Field(default="", validation_alias="AUTH0_AUDIENCE")

    # Development mode - bypasses auth for local development
    dev_mode: bool = Field(default=False, validation_alias="DEV_MODE")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Public URL of the web app - used to build invitation links
    app_url: str = Field(default="http://localhost:3000", validation_alias="APP_URL")

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        validation_alias="CORS_ORIGINS",
    )

    # Invitations
    invitation_ttl_days: int = Field(default=7, ge=1, validation_alias="INVITATION_TTL_DAYS")

    # Folders
    default_folder_name: str = Field(default="General", validation_alias="DEFAULT_FOLDER_NAME")
    max_folder_depth: int = Field(default=32, ge=1, validation_alias="MAX_FOLDER_DEPTH")

    # Bookmarks / tags
    bookmarks_default_limit: int = Field(default=50, validation_alias="BOOKMARKS_DEFAULT_LIMIT")
    bookmarks_max_limit: int = Field(default=100, validation_alias="BOOKMARKS_MAX_LIMIT")
    max_tags_per_bookmark: int = Field(default=20, validation_alias="MAX_TAGS_PER_BOOKMARK")
    max_title_length: int = Field(default=500, validation_alias="MAX_TITLE_LENGTH")
    max_notes_length: int = Field(default=1000, validation_alias="MAX_NOTES_LENGTH")

    # SMTP - invitation emails are skipped (and logged) when smtp_host is empty
    smtp_host: str = Field(default="", validation_alias="SMTP_HOST")
    smtp_port: int = Field(default=587, validation_alias="SMTP_PORT")
    smtp_user: str = Field(default="", validation_alias="SMTP_USER")
    smtp_password: str = Field(default="", validation_alias="SMTP_PASSWORD")
    smtp_from: str = Field(default="", validation_alias="SMTP_FROM")
    smtp_use_tls: bool = Field(default=True, validation_alias="SMTP_USE_TLS")

    @model_validator(mode="after")
    def validate_dev_mode_security(self) -> "Settings":
        """
        Prevent DEV_MODE from being enabled with a production database.

        DEV_MODE bypasses authentication entirely, so it is only allowed against
        local databases (or SQLite files).
        """
        if not self.dev_mode:
            return self

        parsed = urlparse(self.database_url)
        if parsed.scheme.startswith("sqlite"):
            return self

        hostname = parsed.hostname or ""
        local_hosts = {"localhost", "127.0.0.1", "0.0.0.0", "::1"}
        if hostname.lower() not in local_hosts:
            raise ValueError(
                f"DEV_MODE cannot be enabled with a non-local database. "
                f"Database host '{hostname}' appears to be a production database. "
                f"DEV_MODE bypasses all authentication and must only be used locally.",
            )

        return self

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @property
    def auth0_issuer(self) -> str:
        """Get the Auth0 issuer URL."""
        return f"https://{self.auth0_domain}/"

    @property
    def auth0_jwks_url(self) -> str:
        """Get the Auth0 JWKS URL for fetching public keys."""
        return f"https://{self.auth0_domain}/.well-known/jwks.json"

    @property
    def smtp_configured(self) -> bool:
        """True when enough SMTP settings are present to send mail."""
        return bool(self.smtp_host and self.smtp_from)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
