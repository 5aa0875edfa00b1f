"""
Type-safe configuration using Pydantic Settings
Validates environment variables and provides sensible defaults
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class PortalConfig(BaseSettings):
    """
    Portal configuration with validation
    Automatically loads from environment variables and .env file
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # Identity provider settings
    identity_api_url: str = Field(
        "http://localhost:9099",
        description="Base URL of the identity service that issues and verifies sessions",
    )
    identity_api_key: Optional[str] = Field(
        None, description="API key sent to the identity service"
    )
    identity_timeout: float = Field(
        10.0, gt=0, description="Timeout in seconds for identity service calls"
    )

    # Session settings
    session_cookie_name: str = Field("session", description="Name of the session cookie")
    session_max_age_days: int = Field(
        5,
        ge=1,
        le=14,
        description="Lifetime of a newly created session cookie in days (default: 5)",
    )
    login_path: str = Field("/login", description="Redirect target for unauthenticated requests")
    public_paths: List[str] = Field(
        default_factory=lambda: ["/login", "/api/auth"],
        description="Path prefixes that never require a session",
    )

    # Sleepover settings
    guest_signout_code: str = Field(
        "3693", min_length=4, description="Security code residents enter to sign a sleepover guest out"
    )

    # Database settings
    db_file: str = Field("residence.db", description="SQLite database file path")

    # Server settings
    environment: str = Field("development", description="development or production")
    host: str = Field("0.0.0.0", description="Bind address")
    port: int = Field(8000, ge=1, le=65535, description="Bind port")
    log_level: str = Field("INFO", description="Root log level")

    @field_validator("identity_api_url")
    @classmethod
    def validate_identity_url(cls, v: str) -> str:
        """Validate identity service URL format"""
        if not v.startswith(("http://", "https://")):
            raise ValueError(
                "IDENTITY_API_URL must start with http:// or https://"
            )
        return v.rstrip("/")

    @field_validator("login_path")
    @classmethod
    def validate_login_path(cls, v: str) -> str:
        """Login path must be absolute"""
        if not v.startswith("/"):
            raise ValueError("LOGIN_PATH must start with '/'")
        return v

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        v = v.lower()
        if v not in ("development", "production"):
            raise ValueError("ENVIRONMENT must be 'development' or 'production'")
        return v

    @property
    def is_production(self) -> bool:
        """Secure cookies are only issued in production"""
        return self.environment == "production"

    @property
    def session_max_age_seconds(self) -> int:
        return self.session_max_age_days * 24 * 60 * 60


# Singleton instance
_config: Optional[PortalConfig] = None


def get_config() -> PortalConfig:
    """
    Get or create the global configuration instance

    Returns:
        PortalConfig: Validated configuration

    Raises:
        ValidationError: If configuration is invalid
    """
    global _config
    if _config is None:
        _config = PortalConfig()
    return _config


def reload_config() -> PortalConfig:
    """Force reload configuration from environment"""
    global _config
    _config = PortalConfig()
    return _config
