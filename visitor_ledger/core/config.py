"""
Application configuration using Pydantic Settings.
"""

from pathlib import Path
from typing import List

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from visitor_ledger.models.enums import LedgerBackend


class Settings(BaseSettings):
    """Application settings."""

    # Application
    APP_NAME: str = "Visitor Ledger"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENABLE_SWAGGER: bool = True
    DOCS_URL: str = "/docs"
    REDOC_URL: str = "/redoc"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # Paths
    DATA_DIR: Path = Path(__file__).parent.parent.parent / "data"

    # Storage
    LEDGER_BACKEND: LedgerBackend = LedgerBackend.SQL
    # Empty means a SQLite file inside DATA_DIR
    DATABASE_URL: str = ""
    DATABASE_ECHO: bool = False
    MONGO_URL: str = Field(
        default="mongodb://localhost:27017",
        validation_alias=AliasChoices("MONGO_URL", "DB_CONNECTION"),
    )
    MONGO_DATABASE: str = "visitor_ledger"
    MONGO_COLLECTION: str = "visitors"

    # HTTP
    API_PREFIX: str = "/api"
    GREETING: str = "Hello World!"

    # CORS
    CORS_ORIGINS: List[str] = ["*"]  # Restrict in production!

    # Identifier extraction: honour X-Forwarded-For / X-Real-IP when the body has no identifier
    TRUST_FORWARDED_HEADERS: bool = True

    # Request logging
    API_REQUEST_LOGGING_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"

    @model_validator(mode="after")
    def default_database_url(self) -> "Settings":
        if not self.DATABASE_URL:
            self.DATABASE_URL = f"sqlite+aiosqlite:///{(self.DATA_DIR.resolve() / 'ledger.db').as_posix()}"
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )


settings = Settings()
