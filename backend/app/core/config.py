# backend/app/core/config.py
"""
Production-ready configuration using pydantic-settings.

Security considerations:
- No hardcoded secrets in production (SECRET_KEY must be set via env)
- CORS_ORIGINS parsed from comma-separated env var, never defaults to "*"
- Database URLs normalized for async drivers automatically
- Token lifetimes and lockout thresholds are configuration, not constants
"""
from functools import lru_cache
from typing import List

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

INSECURE_DEV_KEY = "INSECURE_DEV_KEY_CHANGE_IN_PRODUCTION"


class Settings(BaseSettings):
    """
    Strictly typed application settings.

    Priority for loading:
    1. Environment variables (highest priority)
    2. .env file (via pydantic-settings)
    3. Default values (lowest priority, dev-safe only)
    """

    # ─────────────────────────────────────────────────────────────
    # Application metadata
    # ─────────────────────────────────────────────────────────────
    PROJECT_NAME: str = "Custos"
    PROJECT_VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # ─────────────────────────────────────────────────────────────
    # Environment mode
    # ─────────────────────────────────────────────────────────────
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # ─────────────────────────────────────────────────────────────
    # Security: bearer token (JWT) configuration
    # SECRET_KEY MUST be set in production via environment variable
    # ─────────────────────────────────────────────────────────────
    SECRET_KEY: str = INSECURE_DEV_KEY
    ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "custos"
    JWT_AUDIENCE: str = "custos-clients"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    # ─────────────────────────────────────────────────────────────
    # Refresh tokens
    # A replayed (already rotated) refresh token is treated as theft:
    # every session of the owning account is revoked. A token rotated less
    # than REFRESH_REUSE_GRACE_SECONDS ago lost a concurrent refresh instead.
    # ─────────────────────────────────────────────────────────────
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    REVOKE_ALL_ON_REFRESH_REUSE: bool = True
    REFRESH_REUSE_GRACE_SECONDS: int = 10

    # ─────────────────────────────────────────────────────────────
    # Credential verification
    # ─────────────────────────────────────────────────────────────
    MAX_FAILED_LOGIN_ATTEMPTS: int = 5
    BCRYPT_ROUNDS: int = 12
    DEFAULT_SECURITY_LEVEL: str = "balanced"

    # ─────────────────────────────────────────────────────────────
    # MFA (TOTP + recovery codes)
    # ─────────────────────────────────────────────────────────────
    TOTP_ISSUER: str = "Custos"
    TOTP_VALID_WINDOW: int = 1
    RECOVERY_CODE_COUNT: int = 10

    # ─────────────────────────────────────────────────────────────
    # Revocation ledger background sweep
    # ─────────────────────────────────────────────────────────────
    REVOCATION_SWEEP_ENABLED: bool = True
    REVOCATION_SWEEP_INTERVAL_SECONDS: int = 3600

    # ─────────────────────────────────────────────────────────────
    # Database Configuration
    # Priority: DATABASE_URL env var → SQLite fallback for local dev
    #
    # Hosted providers hand out postgres:// URLs.
    # We normalize to postgresql+asyncpg:// for SQLAlchemy async.
    # ─────────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./custos.db"

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """
        Normalize database URLs for async SQLAlchemy compatibility.

        Conversions:
        - postgres://     → postgresql+asyncpg://
        - postgresql://   → postgresql+asyncpg://
        - sqlite:///      → sqlite+aiosqlite:///
        """
        if v is None:
            return "sqlite+aiosqlite:///./custos.db"

        url = v.strip()

        if url.startswith("postgres://"):
            return url.replace("postgres://", "postgresql+asyncpg://", 1)

        if url.startswith("postgresql://") and "+asyncpg" not in url:
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)

        if url.startswith("sqlite:///") and "+aiosqlite" not in url:
            return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)

        return url

    @field_validator("DEFAULT_SECURITY_LEVEL")
    @classmethod
    def validate_security_level(cls, v: str) -> str:
        if v not in ("fast", "balanced", "strong", "maximum"):
            raise ValueError(f"Unsupported security level: {v}")
        return v

    # ─────────────────────────────────────────────────────────────
    # Database debugging
    # MUST be False in production to prevent SQL query exposure
    # ─────────────────────────────────────────────────────────────
    DATABASE_ECHO: bool = False

    # ─────────────────────────────────────────────────────────────
    # CORS Configuration
    # Parsed from comma-separated CORS_ORIGINS env var
    # Empty string → empty list (NOT "*" for security)
    # ─────────────────────────────────────────────────────────────
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8000"

    @property
    def BACKEND_CORS_ORIGINS(self) -> List[str]:
        """
        Parse CORS_ORIGINS string into a list of allowed origins.

        Returns:
            List of allowed origin URLs
        """
        if not self.CORS_ORIGINS or not self.CORS_ORIGINS.strip():
            return []

        return [
            origin.strip()
            for origin in self.CORS_ORIGINS.split(",")
            if origin.strip()
        ]

    # ─────────────────────────────────────────────────────────────
    # Pydantic Settings Configuration
    # ─────────────────────────────────────────────────────────────
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def reject_dev_key_in_production(self) -> "Settings":
        """Refuse to start a production deployment with the bundled dev key."""
        if self.is_production and self.SECRET_KEY == INSECURE_DEV_KEY:
            raise ValueError("SECRET_KEY must be set in production")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """
    Cached settings instance.

    Using lru_cache ensures settings are only loaded once,
    providing consistent configuration across the application
    and avoiding repeated env var parsing.
    """
    return Settings()


# Default settings instance
# Existing code imports `settings` directly from this module
settings = get_settings()
