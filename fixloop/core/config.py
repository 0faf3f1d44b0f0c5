from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEV_JWT_SECRET = "dev-insecure-secret-change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "FixLoop Request Engine"
    env: str = "dev"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "fixloop"
    mongo_server_selection_timeout_ms: int = Field(5000, ge=100)
    mongo_connect_timeout_ms: int = Field(5000, ge=100)
    mongo_socket_timeout_ms: int = Field(45000, ge=100)

    jwt_secret: str = DEV_JWT_SECRET
    jwt_algorithm: str = "HS256"

    default_search_radius_km: float = Field(10.0, gt=0)
    max_search_radius_km: float = Field(50.0, gt=0)

    provider_code_prefix: str = "PROV"
    provider_code_width: int = Field(7, ge=1)
    provider_code_attempts: int = Field(12, ge=1)

    # limits the provider claim pool to the categories of their profiles
    enforce_category_pool: bool = True

    list_limit: int = Field(200, ge=1)

    cors_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]
    )


def check_settings(settings: Settings) -> Settings:
    # the built-in secret is accepted in dev only
    if settings.env != "dev" and settings.jwt_secret == DEV_JWT_SECRET:
        raise RuntimeError(f"Missing JWT_SECRET in .env (ENV={settings.env})")
    return settings


@lru_cache
def get_settings() -> Settings:
    return check_settings(Settings())
