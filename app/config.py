from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration, read once from the environment (or ``.env``)."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./travel.db"
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    token_expire_hours: int = 24
    page_size: int = 6
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]
    host: str = "0.0.0.0"
    port: int = 3000


@lru_cache
def get_settings() -> Settings:
    return Settings()
