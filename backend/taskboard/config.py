from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str = "postgresql+psycopg2://taskboard:taskboard_dev@db:5432/taskboard"
    environment: str = "development"
    run_migrations_on_startup: bool = True

    cors_origins: list[str] = ["*"]

    # Unknown session keys return an empty task list unless strict lookup is enabled
    strict_session_lookup: bool = False

    # Attachment storage settings
    files_base_path: Path = Path("/data/files")
    max_attachment_size_bytes: int = 1024 * 1024  # 1 MB

    # Redis settings (empty disables the queue and reports redis as "disabled")
    redis_url: str | None = "redis://localhost:6379"
    redis_conn_retries: int = 1

    # Task queue settings
    task_queue_max_retries: int = 3
    task_queue_job_timeout_seconds: int = 60


settings = Settings()
