"""Application settings loaded from the environment (prefix ``ASSET_CACHE_``)."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class RemoteSettings(BaseModel):
    provider: Literal["github", "git"] = "github"
    # "owner/name" for GitHub, a filesystem path for the git CLI provider
    repository: str = ""
    token: SecretStr | None = None
    branch: str = "main"
    api_url: str = "https://api.github.com"
    timeout: float = Field(default=10.0, gt=0)
    extra_branches: list[str] = Field(default_factory=list)


class DatabaseSettings(BaseModel):
    url: str | None = None
    echo: bool = False
    timeout: float = Field(default=5.0, gt=0)
    pool_size: int | None = None
    max_overflow: int | None = None


class CacheSettings(BaseModel):
    enabled: bool = True
    ttl_seconds: float = Field(default=300.0, ge=0)


class TenantSettings(BaseModel):
    owner_category: str = "application"
    owner_key: str = "default"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ASSET_CACHE_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    remote: RemoteSettings = RemoteSettings()
    database: DatabaseSettings = DatabaseSettings()
    cache: CacheSettings = CacheSettings()
    tenant: TenantSettings = TenantSettings()

    remote_missing_policy: Literal["serve_stale", "fail"] = "serve_stale"
    log_level: str = "INFO"

    @property
    def database_url(self) -> str | None:
        return self.database.url or None

    @property
    def remote_token(self) -> str:
        return self.remote.token.get_secret_value() if self.remote.token else ""


@lru_cache
def get_settings() -> Settings:
    return Settings()
