import json
from functools import lru_cache
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_STORAGE_PROVIDER = "streamline.infra.storage.memory.InMemoryStorageManager"
DEFAULT_STREAMS_MODULE = "streamline.modules.streams.StreamsModule"


class StorageProviderConfiguration(BaseModel):
    """Which `StorageManager` to instantiate and the properties handed to `init`."""

    provider_class: str = DEFAULT_STORAGE_PROVIDER
    properties: Dict[str, Any] = Field(default_factory=dict)


class AuthorizerConfiguration(BaseModel):
    class_name: str = "streamline.security.authorizer.DefaultAuthorizer"
    admin_principals: List[str] = Field(default_factory=list)
    # request filter installed in front of /api; None selects the bearer-token filter
    container_request_filter: str | None = None

    @field_validator("admin_principals", mode="before")
    def _parse_principals(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [str(s).strip() for s in parsed if str(s).strip()]
            except ValueError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v


class ModuleConfiguration(BaseModel):
    name: str
    class_name: str
    config: Dict[str, Any] | None = None


class ServletFilterConfiguration(BaseModel):
    """An extra ASGI middleware class plus the keyword arguments it is built with."""

    class_name: str
    params: Dict[str, Any] = Field(default_factory=dict)


def _default_modules() -> List[ModuleConfiguration]:
    return [ModuleConfiguration(name="streams", class_name=DEFAULT_STREAMS_MODULE)]


class Settings(BaseSettings):
    """
    Central application settings loaded from environment variables (and .env).

    Notes
    -----
    - Every variable is prefixed with ``STREAMLINE_``; nested sections use a
      double underscore, e.g. ``STREAMLINE_STORAGE__PROVIDER_CLASS``.
    - Whole sections may be given as JSON:
        STREAMLINE_MODULES='[{"name":"streams","class_name":"..."}]'
    - `cors_allow_origins` and `authorizer.admin_principals` accept a JSON array
      or a comma-separated string.
    """
    model_config = SettingsConfigDict(
        env_prefix="STREAMLINE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ---------- Server ----------
    app_name: str = "Streamline Web Service"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    catalog_root_url: str = "http://localhost:8080/api"

    # ---------- Storage ----------
    storage: StorageProviderConfiguration = Field(default_factory=StorageProviderConfiguration)

    # ---------- Modules ----------
    modules: List[ModuleConfiguration] = Field(default_factory=_default_modules)

    # ---------- Security ----------
    authorizer: AuthorizerConfiguration | None = None
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # ---------- HTTP proxy (handed to every module) ----------
    http_proxy_url: str | None = None
    http_proxy_username: str | None = None
    http_proxy_password: str | None = None

    # ---------- CORS / middlewares ----------
    enable_cors: bool = False
    cors_allow_origins: list[str] | None = None
    servlet_filters: List[ServletFilterConfiguration] = Field(default_factory=list)

    # ---------- Metrics ----------
    metrics_enabled: bool = Field(
        default=False,
        description="Expose /metrics and time every request."
    )

    @field_validator("cors_allow_origins", mode="before")
    def _parse_cors_origins(cls, v):
        """Accept JSON array or comma-separated string."""
        if v is None:
            return None
        if isinstance(v, str):
            try:
                parsed = json.loads(v)  # JSON array
                if isinstance(parsed, list):
                    return [str(s).strip() for s in parsed if str(s).strip()]
            except ValueError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
