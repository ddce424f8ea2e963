"""
Configuration module for the Auth Portal.

This module uses Pydantic Settings to load and validate environment variables
for the post-login destinations, the external Auth Service connection, session
resolution behaviour, and server/CORS settings.

Environment variables are loaded from .env file or system environment.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LOOPBACK_HOSTS = ("127.0.0.1", "localhost", "::1")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    DASHBOARD_URL and AUTH_URL are mandatory: the redirect logic has no
    sensible default for either of them.
    """

    # =========================================================================
    # Redirect Destinations
    # =========================================================================

    DASHBOARD_URL: HttpUrl = Field(
        ...,
        description="Where authenticated users land (e.g., https://app.example.com/dashboard)",
    )

    AUTH_URL: HttpUrl = Field(
        ...,
        description="Base URL of the auth entry pages; sign-out goes to {AUTH_URL}/login",
    )

    # =========================================================================
    # External Auth Service (GoTrue-compatible REST API)
    # =========================================================================

    AUTH_SERVICE_URL: HttpUrl = Field(
        ...,
        description="Auth Service project URL (e.g., https://xyz.supabase.co)",
    )

    AUTH_SERVICE_API_KEY: str = Field(
        ...,
        description="Public (anon) API key sent as the 'apikey' header",
        min_length=1,
    )

    AUTH_REQUEST_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout for each HTTP call to the Auth Service",
        gt=0,
        le=120,
    )

    SESSION_RESOLUTION_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="How long consumers wait for the first session event before giving up",
        gt=0,
        le=300,
    )

    # =========================================================================
    # Portal Server Configuration
    # =========================================================================

    PORTAL_HOST: str = Field(
        default="127.0.0.1",
        description="Host to bind the portal server (loopback: the portal serves one local user)",
    )

    PORTAL_PORT: int = Field(
        default=5173,
        description="Port to bind the portal server",
        ge=1,
        le=65535,
    )

    ALLOWED_ORIGINS: Optional[str] = Field(
        None,
        description="Comma-separated list of allowed CORS origins (leave empty for no CORS)",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def dashboard_url(self) -> str:
        """Dashboard URL as a plain string, used verbatim as redirect target."""
        return str(self.DASHBOARD_URL)

    @property
    def auth_url(self) -> str:
        """Auth entry base URL without trailing slash."""
        return str(self.AUTH_URL).rstrip("/")

    @property
    def login_url(self) -> str:
        """Destination after sign-out."""
        return f"{self.auth_url}/login"

    @property
    def auth_service_url(self) -> str:
        """Auth Service base URL without trailing slash (for HTTP client usage)."""
        return str(self.AUTH_SERVICE_URL).rstrip("/")

    @property
    def allowed_origins_list(self) -> List[str]:
        """
        Parse and return ALLOWED_ORIGINS as a list.

        Returns:
            List of allowed origin URLs, or empty list if not configured.
        """
        if not self.ALLOWED_ORIGINS:
            return []

        return [
            origin.strip()
            for origin in self.ALLOWED_ORIGINS.split(",")
            if origin.strip()
        ]

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate LOG_LEVEL is a standard logging level name.

        Raises:
            ValueError: If the level is unknown
        """
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        level = v.upper()

        if level not in allowed_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {allowed_levels}, got: {v}"
            )

        return level


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If DASHBOARD_URL, AUTH_URL or the Auth Service
                         variables are missing or invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Validate critical configuration settings and return a status report.

    Called during application startup; problems are logged, not raised,
    because pydantic has already enforced the hard requirements.

    Returns:
        Dictionary with validation status and any warnings.
    """
    errors = []
    warnings = []

    if settings.DASHBOARD_URL.scheme != "https":
        warnings.append("DASHBOARD_URL is not served over HTTPS")

    if settings.AUTH_URL.scheme != "https":
        warnings.append("AUTH_URL is not served over HTTPS")

    if settings.dashboard_url.rstrip("/") == settings.auth_url:
        errors.append("DASHBOARD_URL and AUTH_URL point to the same location")

    if "localhost" in settings.auth_service_url or "127.0.0.1" in settings.auth_service_url:
        warnings.append("AUTH_SERVICE_URL points to localhost")

    if settings.PORTAL_HOST not in LOOPBACK_HOSTS:
        warnings.append(
            "PORTAL_HOST is not a loopback address; the session is readable from other hosts"
        )

    if settings.SESSION_RESOLUTION_TIMEOUT_SECONDS < settings.AUTH_REQUEST_TIMEOUT_SECONDS:
        warnings.append(
            "SESSION_RESOLUTION_TIMEOUT_SECONDS is shorter than a single Auth Service request"
        )

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "dashboard_url": settings.dashboard_url,
        "login_url": settings.login_url,
    }
