"""Configuration management using pydantic-settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from enum import Enum
import structlog


class LedgerBackend(str, Enum):
    """Supported import ledger stores."""
    FILE = "file"
    REDIS = "redis"


class SheetSourceType(str, Enum):
    """Supported pricebook sheet sources."""
    GOOGLE = "google"
    WORKBOOK = "workbook"
    JSON = "json"


class CatalogBackend(str, Enum):
    """Supported catalog stores."""
    DATABASE = "database"
    MEMORY = "memory"


class IngestionSettings(BaseSettings):
    """Pricebook import configuration.

    All settings prefixed with PRICEBOOK_ (e.g., PRICEBOOK_DEFAULT_DISTRIBUTOR=IMPRO)
    """

    # Company Resolution
    default_distributor: str = Field(
        default="IMPRO",
        min_length=1,
        description="Distributor credited with pricing when a page names none"
    )

    # Classification
    max_scan_rows: int = Field(
        default=35,
        ge=1,
        le=500,
        description="Rows inspected when looking for a layout header"
    )
    manufacturer_scan_rows: int = Field(
        default=20,
        ge=0,
        le=200,
        description="Rows inspected when looking for the 'Supplier' label"
    )
    preview_rows: int = Field(
        default=10,
        ge=0,
        le=100,
        description="Rows dumped into unrecognized-sheet diagnostics"
    )

    # Ledger
    ledger_backend: LedgerBackend = Field(
        default=LedgerBackend.FILE,
        description="Where import progress is recorded (file, redis)"
    )
    ledger_path: str = Field(
        default="pricebook-import-progress.json",
        description="JSON ledger file used by the file backend"
    )
    ledger_redis_key: str = Field(
        default="pricebook:ledger",
        description="Redis hash used by the redis backend"
    )

    # Catalog
    catalog_backend: CatalogBackend = Field(
        default=CatalogBackend.DATABASE,
        description="Catalog persistence (database, memory)"
    )

    # Sheet Source
    batch_file: str = Field(
        default="config/pricebook_batch.json",
        description="JSON file listing the pricebook pages to import"
    )
    sheet_source: SheetSourceType = Field(
        default=SheetSourceType.GOOGLE,
        description="Where page grids are read from (google, workbook, json)"
    )
    spreadsheet_url: Optional[str] = Field(
        default=None,
        description="Google Sheets URL of the pricebook"
    )
    workbook_path: Optional[str] = Field(
        default=None,
        description="Local .xlsx export of the pricebook"
    )
    grid_directory: str = Field(
        default="sheet-data",
        description="Directory holding sheet-data-<page>.json grid files"
    )

    # Processing
    concurrency: int = Field(
        default=1,
        ge=1,
        le=16,
        description="Sheets processed at once within a batch"
    )

    model_config = SettingsConfigDict(
        env_prefix="PRICEBOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    database_url: str

    # Redis Configuration
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_password: str
    redis_url: Optional[str] = None

    # Worker Configuration
    queue_name: str = "pricebook-import-queue"
    job_timeout: int = 1800
    log_level: str = "INFO"
    environment: str = "development"

    # Google Sheets Configuration
    google_credentials_path: str = "/app/credentials/google-credentials.json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def __init__(self, **kwargs):
        """Initialize settings and build derived values."""
        super().__init__(**kwargs)
        # Build Redis URL if not provided
        if not self.redis_url:
            self.redis_url = f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/0"


# Global settings instances
settings = Settings()
ingestion_settings = IngestionSettings()


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog for JSON logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# Initialize logging on module import (after settings are loaded)
try:
    configure_logging(settings.log_level)
except Exception:
    # If settings fail to load, use default log level
    configure_logging("INFO")
