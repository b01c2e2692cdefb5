# WORKFLOW: Core configuration management for the POS Sales Ingestion API.
# Used by: All modules throughout the application
# Configuration includes:
# - Database connection settings
# - Upload limits and accepted file types
# - Ingestion batch size and CSV chunking
# - Job queue / worker settings (mode, pool size, poll interval)
# - Security settings (basic auth credentials, rate limit)
# - API settings (CORS, host, port)
# - Logging configuration
#
# Loaded at startup and used by all services for consistent configuration.

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./data/sales.db"
    data_dir: str = "./data"

    # Uploads
    upload_dir: str = "./data/uploads"
    max_upload_mb: int = 10
    allowed_extensions: list[str] = [".csv", ".xlsb", ".xlsx"]

    # Ingestion
    batch_size: int = 1000
    csv_chunk_size: int = 5000

    # Jobs
    upload_mode: str = "sync"  # sync | async
    run_workers: bool = True
    worker_count: int = 1
    worker_poll_interval: float = 1.0
    job_error_max_length: int = 4000
    job_wait_timeout: float = 300.0
    job_stale_after: float = 3600.0  # seconds in processing before a job is requeued

    # Security
    auth_enabled: bool = True
    admin_user: str = ""
    admin_pass: str = ""
    rate_limit_enabled: bool = True
    rate_limit: str = "600 per 15 minutes"

    # API
    project_name: str = "POS Sales Ingestion API"
    version: str = "1.0.0"

    # Environment
    environment: str = "development"
    debug: bool = False

    # Logging
    log_level: str = "INFO"

    # CORS
    allowed_origins: list[str] = ["*"]
    allowed_methods: list[str] = ["*"]
    allowed_headers: list[str] = ["*"]

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 3000

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


settings = Settings()
