from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "dococr"
    db_username: str = "dococr"
    db_password: str = "secret"
    db_pool_max_size: int = 10

    files_root: str = "/app/files"

    worker_concurrency: int = Field(default=2, ge=1)
    max_job_attempts: int = Field(default=3, ge=1)
    job_poll_interval_seconds: int = 5
    queue_visibility_timeout_seconds: int = 600
    lease_ttl_seconds: int = 300
    lease_busy_retry_seconds: int = 30

    rasterizer: str = "pdftoppm"
    pdftoppm_path: str = "pdftoppm"
    raster_dpi: int = 300

    tesseract_cmd: str = ""
    default_languages: str = "eng"
    low_quality_threshold: float = 70.0

    publish_pg_notify: bool = False
    pg_notify_channel: str = "ocr_progress"
