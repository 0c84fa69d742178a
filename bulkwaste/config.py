from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Bulk Waste Collection"
    log_level: str = "INFO"

    # Required at runtime; tests point it at SQLite (see tests/conftest.py)
    database_url: Optional[str] = None

    municipality_api_url: str = "https://json.geoapi.pt/municipios"
    municipality_api_timeout: float = 5.0

    cors_origins: List[str] = ["*"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
