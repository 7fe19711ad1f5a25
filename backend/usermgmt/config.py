"""
UserMgmt Backend — Application Configuration
==============================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
       A typo in CSRF_COOKIE_SECURE or LOG_LEVEL fails at boot, not on the
       first mutating request.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by the app factory, every pipeline step and the API client.
When:  Loaded once at module import time; validated before app starts.

Header and cookie names live here (not as literals in the steps) so the
browser bundle and the backend can be kept in agreement from one place.
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development.
    Production deployments MUST override AUTH_JWT_SECRET and should set
    CSRF_COOKIE_SECURE=true behind HTTPS.
    """

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # What: Allowed origins for cross-origin requests
    # Format: Comma-separated URLs (parsed by cors_origins_list)
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # What: Controls verbosity of application logging
    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Correlation ───────────────────────────────────────────────────────
    # What: Header carrying the correlation identifier in both directions
    correlation_header: str = Field(default="X-Correlation-Id")

    # ── CSRF ──────────────────────────────────────────────────────────────
    # What: Header the client echoes the token in on mutating requests
    csrf_header: str = Field(default="X-CSRF-Token")

    # What: Cookie that binds the issued token to the browser session
    csrf_cookie_name: str = Field(default="csrf_token")

    # What: Whether the CSRF cookie is restricted to HTTPS
    # Trade-off: must be False for plain-http local development
    csrf_cookie_secure: bool = Field(default=True)

    # What: Entropy of issued tokens, in random bytes (before base64 encoding)
    csrf_token_bytes: int = Field(default=32, ge=16, le=128)

    # What: Issuance endpoint path, used by the server router and the client
    csrf_token_path: str = Field(default="/api/csrf")

    # ── Authentication ────────────────────────────────────────────────────
    # What: Shared secret the identity provider signs access tokens with
    # Required: YES. Without it every credential is rejected
    auth_jwt_secret: str = Field(default="", description="JWT signing secret of the identity provider")
    auth_jwt_algorithm: str = Field(default="HS256")

    # What: Expected `aud` claim; empty disables the audience check
    auth_jwt_audience: str = Field(default="authenticated")

    # What: Cookie consulted when no Authorization header is sent
    auth_cookie_name: str = Field(default="sb-access-token")

    # ── Error Responses ───────────────────────────────────────────────────
    # What: Whether unclassified errors keep their original message in the
    #       response envelope (the message is always logged)
    expose_internal_error_messages: bool = Field(default=True)

    # ── API Client ────────────────────────────────────────────────────────
    api_base_url: str = Field(default="http://localhost:8000")
    api_timeout: float = Field(default=10.0, gt=0, le=300)

    # What: Tenacity retry settings for the CSRF issuance fetch
    # Why: A dropped connection during bootstrap should not leave the
    #      session without a token for its whole lifetime
    csrf_fetch_max_attempts: int = Field(default=3, ge=1, le=10)
    csrf_fetch_min_wait: float = Field(default=0.2, ge=0, le=30)
    csrf_fetch_max_wait: float = Field(default=2.0, ge=0, le=120)

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that critical settings are configured.
        When:  Called during app startup (lifespan).
        How:   Collects every problem and raises one ValueError listing them.
        """
        errors = []
        if not self.auth_jwt_secret:
            errors.append(
                "AUTH_JWT_SECRET is not set. "
                "Every authenticated route will answer auth/unauthenticated."
            )
        if self.csrf_fetch_min_wait > self.csrf_fetch_max_wait:
            errors.append("CSRF_FETCH_MIN_WAIT must not exceed CSRF_FETCH_MAX_WAIT.")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance, imported throughout the application
settings = Settings()
