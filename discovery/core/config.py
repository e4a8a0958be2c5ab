from functools import lru_cache
from typing import Literal, Optional
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "ProductDiscovery"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"

    # Mongo (record store)
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "shop"
    MONGO_TLS: bool = False

    # Mongo Atlas Search (secondary index); defaults to the record store cluster
    SEARCH_MONGO_URI: Optional[str] = None
    SEARCH_MONGO_DB: Optional[str] = None
    SEARCH_COLLECTION: str = "search_products"
    SEARCH_INDEX_NAME: str = "products_search"
    SEARCH_ENSURE_SCHEMA_ON_STARTUP: bool = False
    search_probe_timeout_s: float = 1.0        # liveness probe bound; fallback beyond that
    search_sync_batch_size: int = 500          # documents per bulk_write during resync

    # Redis (optional)
    REDIS_URL: Optional[str] = None
    suggestion_cache_ttl: int = 60             # seconds; live-typing cache

    # View tracking
    view_dedup_window_s: int = 10
    user_history_days: int = 30
    guest_history_days: int = 7
    VIEW_DEDUP_ATOMIC: bool = False            # Redis SET NX guard instead of check-then-insert

    # API
    api_prefix: str = "/v1/api"

    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True)

    @property
    def search_uri(self) -> str:
        return self.SEARCH_MONGO_URI or self.MONGO_URI

    @property
    def search_db_name(self) -> str:
        return self.SEARCH_MONGO_DB or self.MONGO_DB

@lru_cache
def get_settings() -> Settings:
    """
    Factory that chooses the right .env file based on APP_ENV.
    Cache makes it cheap to inject via FastAPI dependencies.
    """
    app_env: EnvName = os.getenv("APP_ENV", "development")  # earliest switch
    env_file = _env_file_for(app_env)
    return Settings(
                _env_file=env_file,  # load .env.development or .env.production
                _env_file_encoding="utf-8"
    )
