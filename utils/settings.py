from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration.

    Each field maps to the upper-cased environment variable of the same
    name (`data_folder` -> `DATA_FOLDER`). A `.env` file in the working
    directory is read too; real environment variables win over it.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    data_folder: str = "./data"
    api_config_path: str = "./api_config.json"

    # Celery
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"
    celery_task_always_eager: bool = False

    log_level: str = "INFO"

    # AI analysis
    ai_timeout_seconds: float = 60.0
    max_analysis_rows: int = 10

    sse_poll_interval: float = 0.5


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
