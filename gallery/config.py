"""
Application Configuration
Uses Pydantic Settings for environment-based configuration
"""

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "Gallery API"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production)$")
    DEBUG: bool = Field(default=False)
    API_V1_STR: str = "/api/v1"

    # CORS
    # Allow str because it can be a comma-separated string in .env
    CORS_ORIGINS: str | list[str] = Field(
        default=["http://localhost:5173", "http://localhost:8000"]
    )

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./gallery.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False
    # Create tables and seed system tag definitions on startup (development only)
    DB_CREATE_ALL: bool = False

    # Blob storage
    STORAGE_PATH: str = "./storage/images"
    # Public URL prefix under which stored objects are served
    IMAGE_BASE_URL: str = "http://localhost:8000/storage"

    # Uploads
    MAX_IMAGE_SIZE: int = 32 * 1024 * 1024  # 32MB
    REMOTE_FETCH_TIMEOUT: float = 15.0

    # Pagination
    DEFAULT_PAGE_LIMIT: int = 20

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v


# Create global settings instance

load_dotenv()
settings = Settings()


class SessionMode:
    """Database session modes"""

    READ = "read"
    WRITE = "write"
