"""Read-only view of the running configuration, secrets removed."""
from __future__ import annotations

from fastapi import APIRouter

from streamline.core.config import Settings

SECRET_FIELDS = {"jwt_secret", "http_proxy_password"}


def build_router(settings: Settings, catalog_root_url: str) -> APIRouter:
    router = APIRouter(prefix="/v1/config", tags=["config"])

    @router.get("/streamline")
    async def get_configuration() -> dict:
        conf = settings.model_dump(mode="json", exclude=SECRET_FIELDS)
        conf["catalog_root_url"] = catalog_root_url
        return conf

    return router
