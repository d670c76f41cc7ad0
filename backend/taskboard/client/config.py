from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TASKBOARD_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_base_url: str = "http://localhost:8000"

    # Polling settings
    poll_interval_seconds: float = 5.0
    max_backoff_seconds: float = 60.0

    request_timeout_seconds: float = 10.0
