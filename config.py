from __future__ import annotations
from functools import lru_cache
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = Path(__file__).resolve().parent / "data"

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "tailoring"

    # Session tokens
    JWT_SECRET: str = "change-me-in-production-use-a-32-byte-or-longer-secret"
    JWT_ALGORITHM: str = "HS256"
    SESSION_MAX_AGE_DAYS: int = 30

    # Static reference files
    ADMIN_FILE: Path = DATA_DIR / "admin.json"
    TAXONOMY_FILE: Path = DATA_DIR / "measurements.json"

    CORS_ORIGINS: list[str] = ["*"]
    LOG_LEVEL: str = "INFO"
    # Include raw error strings in 500 responses
    EXPOSE_ERRORS: bool = True

@lru_cache
def get_settings() -> Settings:
    return Settings()
