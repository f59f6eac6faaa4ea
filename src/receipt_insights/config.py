"""
Application settings for the receipt insights service.
Values can be overridden with RECEIPTS_* environment variables or a .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Persistent record store
    DATABASE_PATH: str = "receipts.db"

    # Uploaded receipt images
    IMAGE_DIR: str = "./data/images"
    MAX_UPLOAD_SIZE_BYTES: int = 5 * 1024 * 1024

    # Base URL the recognition service uses to reach served images
    EXTERNAL_BASE_URL: str = "http://localhost:8080"
    IMAGE_FETCH_TIMEOUT: float = 30.0

    # Search
    SEARCH_PAGE_SIZE: int = 10

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "receipt_insights.log"

    model_config = SettingsConfigDict(
        env_prefix="RECEIPTS_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
