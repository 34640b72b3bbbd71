from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database - can use either DATABASE_URL or separate params
    database_url: str | None = None

    # Separate DB params (for passwords with special characters)
    db_host: str | None = None
    db_port: int = 5432
    db_user: str = "postgres"
    db_password: str | None = None
    db_name: str = "postgres"

    # Byte store roots (relative to the working directory unless absolute)
    upload_dir: str = "./uploads"
    exports_dir: str = "./exports"

    # Packaging limits
    checksum_batch_size: int = 10
    bookmark_max_depth: int = 4
    bookmark_max_title_length: int = 120
    max_file_size_mb: int = 100

    log_level: str = "INFO"

    # CORS - production frontend URL
    frontend_url: str | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
