"""Application configuration loaded from environment variables."""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lexauth.core.errors import ConfigurationError
from lexauth.core.security import parse_duration

# Allowed URL schemes for DATABASE_URL (module-level so validators can use it).
VALID_DATABASE_URL_PREFIXES = (
    "postgresql://",
    "postgresql+psycopg2://",
    "postgres://",
    "sqlite://",
    "sqlite+pysqlite://",
)

# Timestamps carry the local UTC offset (%z) so they are unambiguous.
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"

# Only symmetric HMAC algorithms: tokens are signed and verified with one shared secret.
SUPPORTED_JWT_ALGORITHMS = ("HS256", "HS384", "HS512")


class Settings(BaseSettings):
    """Validated application settings from env and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    APP_ENV: Literal["dev", "prod"] = "dev"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    DATABASE_URL: str = "sqlite:///./lexauth.db"
    # Dev/test convenience; production schemas are managed by Alembic.
    AUTO_CREATE_TABLES: bool = False

    # Bearer tokens
    JWT_SECRET: SecretStr = SecretStr("change-me-in-production")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_IN: str = "7d"

    # Password hashing work factor (bcrypt log2 rounds)
    BCRYPT_ROUNDS: int = 12

    # One-time codes sent by email (verification, password reset)
    ONE_TIME_CODE_LENGTH: int = 6
    ONE_TIME_CODE_TTL_SECONDS: int = 300
    ONE_TIME_CODE_MAX_ATTEMPTS: int = 3

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("DATABASE_URL must be set and non-empty")
        if not any(v.startswith(prefix) for prefix in VALID_DATABASE_URL_PREFIXES):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL or SQLite URL (e.g. postgresql:// or sqlite:///)"
            )
        return v.strip()

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value() or not v.get_secret_value().strip():
            raise ValueError("JWT_SECRET must be set and non-empty")
        return v

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if v not in SUPPORTED_JWT_ALGORITHMS:
            raise ValueError(
                f"JWT_ALGORITHM must be one of {', '.join(SUPPORTED_JWT_ALGORITHMS)}"
            )
        return v

    @field_validator("JWT_EXPIRES_IN")
    @classmethod
    def validate_jwt_expires_in(cls, v: str) -> str:
        try:
            parse_duration(v)
        except ConfigurationError as e:
            raise ValueError(e.message) from e
        return v.strip()

    @field_validator("BCRYPT_ROUNDS")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if v < 4 or v > 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return v

    @field_validator("ONE_TIME_CODE_LENGTH")
    @classmethod
    def validate_code_length(cls, v: int) -> int:
        if v < 4 or v > 10:
            raise ValueError("ONE_TIME_CODE_LENGTH must be between 4 and 10")
        return v

    @field_validator("ONE_TIME_CODE_TTL_SECONDS")
    @classmethod
    def validate_code_ttl(cls, v: int) -> int:
        if v < 30 or v > 86400:
            raise ValueError(
                "ONE_TIME_CODE_TTL_SECONDS must be between 30 and 86400 (30 s to 1 day)"
            )
        return v

    @field_validator("ONE_TIME_CODE_MAX_ATTEMPTS")
    @classmethod
    def validate_code_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("ONE_TIME_CODE_MAX_ATTEMPTS must be between 1 and 10")
        return v


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance (safe to call from dependencies)."""
    return Settings()


def configure_logging(level: int = logging.INFO) -> None:
    """Root logging setup for entrypoints (server, CLI). Library modules never call this."""
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
