from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Project Info
    PROJECT_NAME: str = "Dossier Sharing API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = Field(default="development", description="Environment: development, test, staging, production")

    # Database
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./data/dossier.db",
        description="Database URL (SQLite or PostgreSQL)"
    )
    DB_POOL_SIZE: int = Field(default=5, description="Database connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=10, description="Database max overflow connections")
    DB_POOL_TIMEOUT: int = Field(default=30, description="Database pool timeout in seconds")
    DB_POOL_RECYCLE: int = Field(default=3600, description="Database pool recycle time in seconds")

    # Security - signed operator tokens
    SECRET_KEY: str = Field(default="", description="Signing secret for operator tokens (empty = login disabled)")
    ALGORITHM: str = Field(default="HS256", description="Operator token signature algorithm")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(
        default=720,
        description="Operator token lifetime in minutes (0 = tokens never expire)"
    )

    @field_validator('SECRET_KEY')
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if v and len(v) < 32:
            raise ValueError('SECRET_KEY must be at least 32 characters')
        return v

    @field_validator('ALGORITHM')
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        if v != "HS256":
            raise ValueError('Only HS256 is supported for operator tokens')
        return v

    # Security - CORS
    BACKEND_CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        description="Allowed CORS origins"
    )
    MAX_REQUEST_SIZE: int = Field(default=1048576, description="Max request body size in bytes (default 1MB)")

    # Share Links
    SHARE_MIN_MINUTES: int = Field(default=1, description="Shortest accepted share link duration in minutes")
    SHARE_MAX_MINUTES: int = Field(default=10080, description="Longest accepted share link duration in minutes (one week)")
    SHARE_DEFAULT_MINUTES: int = Field(default=60, description="Duration used when the request omits one (one hour)")
    SHARE_TOKEN_INSERT_ATTEMPTS: int = Field(default=3, description="Retries when a generated share token collides")
    PUBLIC_BASE_URL: str = Field(default="", description="Origin used to build share URLs (defaults to request base URL)")

    # Server Configuration
    WORKERS: int = Field(default=4, description="Number of Uvicorn workers")
    HOST: str = Field(default="0.0.0.0", description="Server host")
    PORT: int = Field(default=8000, description="Server port")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    LOG_DIR: str = Field(default="./logs", description="Directory for log files")
    LOG_RETENTION_DAYS: int = Field(default=30, description="Number of days to keep log files")
    LOG_ENABLE_REQUEST_LOGGING: bool = Field(default=True, description="Enable HTTP request/response logging")

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable rate limiting")
    RATE_LIMIT_DEFAULT: str = Field(default="100/minute", description="Default rate limit")
    RATE_LIMIT_AUTH: str = Field(default="5/minute", description="Rate limit for login")
    RATE_LIMIT_SHARE_ACCESS: str = Field(default="30/minute", description="Rate limit for viewers resolving share links")
    RATE_LIMIT_SHARE_LINK: str = Field(default="120/minute", description="Rate limit per share link across all viewers")
    RATE_LIMIT_STORAGE_URI: str = Field(default="memory://", description="Rate limit storage URI")

    def get_log_level(self) -> str:
        """Get log level based on environment."""
        if self.ENVIRONMENT.lower() in ["development", "dev", "test"]:
            return "DEBUG"
        return self.LOG_LEVEL.upper()

    def clamp_share_minutes(self, minutes) -> int:
        """Clamp a requested share duration into the accepted range."""
        if minutes is None:
            minutes = self.SHARE_DEFAULT_MINUTES
        return max(self.SHARE_MIN_MINUTES, min(int(minutes), self.SHARE_MAX_MINUTES))


settings = Settings()
