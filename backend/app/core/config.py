from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = Field(default="dev")  # dev|prod|test
    LOG_LEVEL: str | None = Field(default=None)  # defaults to DEBUG in test, INFO otherwise

    # DB
    DATABASE_URL: str = Field(default="postgresql+psycopg://app:app@db:5432/app")

    # CORS
    CORS_ORIGINS: str = Field(default="http://localhost:3000,http://localhost")

    # Celery / Redis
    REDIS_URL: str = Field(default="redis://redis:6379/0")
    CELERY_TASK_ALWAYS_EAGER: bool = Field(default=False)

    # Job status channel
    JOB_STATUS_BACKEND: str = Field(default="redis")  # redis|memory
    JOB_STATUS_TTL_SECONDS: int = Field(default=24 * 60 * 60)
    JOB_STATUS_POLL_SECONDS: float = Field(default=5.0)  # websocket re-reads the cache this often

    # Files
    UPLOAD_DIR: str = Field(default="/app/data/uploads")
    EXPORT_DIR: str = Field(default="/app/data/exports")
    MAX_UPLOAD_MB: int = Field(default=10)

    # Export
    SAMPLE_ROWS: int = Field(default=3)

    # Seed (dev)
    SEED_DEMO: bool = Field(default=True)


settings = Settings()
