from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class Settings(BaseSettings):
    APP_NAME: str = "Cash-Flow Planner"
    ENV: str = "dev"

    # SQLite file next to the backend; absolute so the CWD does not matter
    _default_db_path = Path(__file__).resolve().parents[2] / "db.sqlite3"
    DATABASE_URL: str = f"sqlite:///{_default_db_path}"

    CORS_ORIGINS: list[str] = ["*"]
    TIMEZONE: str = "America/Sao_Paulo"
    LOG_LEVEL: str = "INFO"

    # Materialize recurring occurrences when a month's cash flow is first requested
    GENERATE_ON_VISIT: bool = False
    PROJECTION_CACHE_SIZE: int = 64

    model_config = SettingsConfigDict(env_file=(".env",), env_prefix="CASHFLOW_", case_sensitive=False)


settings = Settings()
