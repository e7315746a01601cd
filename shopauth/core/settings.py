"""Settings for shopauth.

Settings are loaded from ``SHOPAUTH_*`` environment variables (or a
``.env`` file) once and are immutable afterwards. Components receive the
instance at construction and never read ambient state at call time.
"""

from functools import lru_cache

from pydantic import Field, ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from shopauth.core.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Immutable configuration for the authentication core."""

    model_config = SettingsConfigDict(
        env_prefix="SHOPAUTH_",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    app_name: str = "shopauth"
    debug: bool = False

    # JWT signing
    secret_key: str = Field(..., min_length=16)
    algorithm: str = "HS256"
    issuer: str = "shopauth"
    audience: str = "shopauth-clients"
    access_token_expire_minutes: int = Field(default=15, ge=1)
    clock_skew_seconds: int = Field(default=0, ge=0, le=60)

    # Sessions
    refresh_token_expire_days: int = Field(default=7, ge=1)

    # Password hashing
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # Account lockout
    lockout_threshold: int = Field(default=5, ge=1)
    lockout_minutes: int = Field(default=30, ge=1)

    # Single-use token lifetimes
    password_reset_token_minutes: int = Field(default=60, ge=1)
    two_factor_code_minutes: int = Field(default=5, ge=1)

    # Rate limits (attempts per window)
    login_max_attempts: int = Field(default=5, ge=1)
    login_window_minutes: int = Field(default=15, ge=1)
    register_max_attempts: int = Field(default=3, ge=1)
    register_window_minutes: int = Field(default=60, ge=1)
    password_reset_max_attempts: int = Field(default=3, ge=1)
    password_reset_window_minutes: int = Field(default=60, ge=1)
    forgot_password_max_attempts: int = Field(default=3, ge=1)
    forgot_password_window_minutes: int = Field(default=60, ge=1)
    two_factor_max_attempts: int = Field(default=5, ge=1)
    two_factor_window_minutes: int = Field(default=5, ge=1)

    # Fast KV store
    redis_url: str | None = None
    key_prefix: str = "shopauth"

    # S3 credential store
    aws_bucket_name: str | None = None
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_default_region: str = "us-east-1"
    aws_url: str | None = None
    aws_retry_attempts: int = 3
    s3_base_path: str = "shopauth/"

    # Outbound email
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True
    email_from: str | None = None
    app_base_url: str = "http://localhost:8000"


@lru_cache
def get_settings() -> Settings:
    """Load settings from the environment once.

    Returns:
        The process-wide Settings instance

    Raises:
        ConfigurationError: If required settings are missing or invalid
    """
    try:
        return Settings()
    except PydanticValidationError as e:
        missing = [
            ".".join(str(loc) for loc in error["loc"])
            for error in e.errors()
            if error["type"] == "missing"
        ]
        if missing:
            raise ConfigurationError(
                missing_fields=[f"SHOPAUTH_{name.upper()}" for name in missing]
            ) from e
        raise ConfigurationError(f"Invalid shopauth configuration: {e}") from e
