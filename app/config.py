"""Application configuration."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Symmetric algorithms only; the signing key is a shared secret.
SUPPORTED_JWT_ALGORITHMS = ("HS256", "HS384", "HS512")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The instance is frozen: it is read once at startup and handed to the
    token issuer and services, never mutated afterwards.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="null",
        frozen=True,
    )

    # Application
    app_name: str = Field(default="SmartTech Auth API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    api_prefix: str = Field(default="/api", alias="API_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3001, alias="PORT")
    reload: bool = Field(default=False, alias="RELOAD")

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")
    db_pool_size: int = Field(default=10, alias="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, alias="DB_MAX_OVERFLOW")
    db_retry_attempts: int = Field(default=3, alias="DB_RETRY_ATTEMPTS")
    db_retry_base_delay: float = Field(default=1.0, alias="DB_RETRY_BASE_DELAY")

    # Redis
    redis_host: str = Field(default="localhost", alias="REDIS_HOST")
    redis_port: int = Field(default=6379, alias="REDIS_PORT")
    redis_password: str = Field(default="", alias="REDIS_PASSWORD")
    redis_db: int = Field(default=0, alias="REDIS_DB")

    # JWT
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=1440, alias="JWT_EXPIRES_IN_MINUTES")
    refresh_token_expire_days: int = Field(default=7, alias="JWT_REFRESH_EXPIRES_IN_DAYS")

    # Sessions
    session_expire_hours: int = Field(default=24, alias="SESSION_EXPIRE_HOURS")
    remember_me_session_days: int = Field(default=7, alias="REMEMBER_ME_SESSION_DAYS")
    remember_token_days: int = Field(default=30, alias="REMEMBER_TOKEN_DAYS")
    account_deletion_token_days: int = Field(default=30, alias="ACCOUNT_DELETION_TOKEN_DAYS")

    # Security
    bcrypt_rounds: int = Field(default=12, alias="BCRYPT_ROUNDS")
    max_login_attempts: int = Field(default=5, alias="MAX_LOGIN_ATTEMPTS")
    login_attempt_window_seconds: int = Field(default=900, alias="LOGIN_ATTEMPT_WINDOW_SECONDS")
    account_lockout_seconds: int = Field(default=1800, alias="ACCOUNT_LOCKOUT_SECONDS")

    # CORS
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    # Rate Limiting
    rate_limit_window_seconds: int = Field(default=900, alias="RATE_LIMIT_WINDOW_SECONDS")
    rate_limit_max: int = Field(default=100, alias="RATE_LIMIT_MAX")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, value: str) -> str:
        """Pin the signing algorithm to a supported HMAC variant."""
        algorithm = value.upper()
        if algorithm not in SUPPORTED_JWT_ALGORITHMS:
            raise ValueError(f"Unsupported JWT algorithm: {value}")
        return algorithm

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, value: int) -> int:
        """bcrypt accepts cost factors between 4 and 31."""
        if not 4 <= value <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return value

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]


# Global settings instance
settings = get_settings()
