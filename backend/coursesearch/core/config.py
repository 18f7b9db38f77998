from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    app_name: str = "Course Catalog Search API"
    database_url: str = "sqlite:///./coursesearch.db"
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Catalog documents are fetched from catalog_base_url when set, else read from catalog_data_dir.
    catalog_base_url: str | None = None
    catalog_data_dir: str = "./data/institutions"
    catalog_timeout_s: float = 20.0

    availability_storage_enabled: bool = True

    search_cache_ttl_s: float = 60 * 60
    negative_cache_ttl_s: float = 5 * 60
    search_exact_share: float = 0.5
    default_search_limit: int = 20


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
