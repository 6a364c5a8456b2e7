from pathlib import Path
from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

# Load .env from repo root for local development and scripts.
ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(dotenv_path=ENV_PATH)

class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=True, populate_by_name=True)
    db_path: str = Field(default="./data/rlock.db", alias="RLOCK_DB_PATH")
    table_name: str = Field(default="rlock", alias="RLOCK_TABLE")
    poll_interval_seconds: float = Field(default=1.0, gt=0, alias="RLOCK_POLL_INTERVAL_SECONDS")
    max_age_seconds: float = Field(default=3600.0, gt=0, alias="RLOCK_MAX_AGE_SECONDS")
    busy_timeout_seconds: float = Field(default=5.0, ge=0, alias="RLOCK_BUSY_TIMEOUT_SECONDS")

settings = Settings()
