"""Stream schemas within a topology."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Request, status
from fastapi.responses import JSONResponse

from streamline.api.dependencies import require_permission
from streamline.api.responses import (
    ResponseMessage,
    respond_entities,
    respond_entity,
    respond_error,
    respond_exception,
)
from streamline.api.routers.common import (
    CATALOG_PREFIX,
    filter_not_found,
    resolve_version_id,
    topology_version_query_params,
)
from streamline.domain.models.stream import StreamInfo
from streamline.domain.services.stream_catalog_service import StreamCatalogService
from streamline.security.authorizer import Action, Authorizer

RESOURCE = "topology_stream"


def build_router(svc: StreamCatalogService, authorizer: Authorizer) -> APIRouter:
    router = APIRouter(prefix=CATALOG_PREFIX, tags=["streams"])
    can_read = Depends(require_permission(authorizer, Action.READ, RESOURCE))
    can_write = Depends(require_permission(authorizer, Action.WRITE, RESOURCE))

    def _list(request: Request, topology_id: int, version_id: int | None) -> JSONResponse:
        try:
            resolved = resolve_version_id(svc, topology_id, version_id)
            if resolved is None:
                return filter_not_found(topology_id, version_id, request)
            params = topology_version_query_params(topology_id, resolved, request)
            return respond_entities(svc.list_stream_infos(params))
        except Exception as exc:
            return respond_exception(exc)

    def _get(topology_id: int, stream_id: int, version_id: int | None) -> JSONResponse:
        try:
            stream = svc.get_stream_info(topology_id, stream_id, version_id)
        except Exception as exc:
            return respond_exception(exc)
        if stream is None:
            return respond_error(status.HTTP_404_NOT_FOUND, ResponseMessage.ENTITY_NOT_FOUND, str(stream_id))
        return respond_entity(stream)

    @router.get("/topologies/{topology_id}/streams", dependencies=[can_read])
    def list_stream_infos(
        request: Request,
        topology_id: int = Path(..., description="Topology ID"),
    ) -> JSONResponse:
        """List the streams of the CURRENT version, filtered by any query params."""
        return _list(request, topology_id, None)

    @router.get("/topologies/{topology_id}/versions/{version_id}/streams", dependencies=[can_read])
    def list_stream_infos_for_version(
        request: Request,
        topology_id: int = Path(...),
        version_id: int = Path(..., description="Topology version ID"),
    ) -> JSONResponse:
        return _list(request, topology_id, version_id)

    @router.get("/topologies/{topology_id}/streams/{stream_id}", dependencies=[can_read])
    def get_stream_info_by_id(
        topology_id: int = Path(...),
        stream_id: int = Path(..., description="Stream ID (numeric, not streamId)"),
    ) -> JSONResponse:
        return _get(topology_id, stream_id, None)

    @router.get("/topologies/{topology_id}/versions/{version_id}/streams/{stream_id}", dependencies=[can_read])
    def get_stream_info_by_id_and_version(
        topology_id: int = Path(...),
        version_id: int = Path(...),
        stream_id: int = Path(...),
    ) -> JSONResponse:
        return _get(topology_id, stream_id, version_id)

    @router.post("/topologies/{topology_id}/streams", dependencies=[can_write])
    def add_stream_info(
        stream: StreamInfo,
        topology_id: int = Path(...),
    ) -> JSONResponse:
        try:
            created = svc.add_stream_info(topology_id, stream)
        except Exception as exc:
            return respond_exception(exc)
        return respond_entity(created, status.HTTP_201_CREATED)

    @router.put("/topologies/{topology_id}/streams/{stream_id}", dependencies=[can_write])
    def add_or_update_stream_info(
        stream: StreamInfo,
        topology_id: int = Path(...),
        stream_id: int = Path(...),
    ) -> JSONResponse:
        try:
            stored = svc.add_or_update_stream_info(topology_id, stream_id, stream)
        except Exception as exc:
            return respond_exception(exc)
        return respond_entity(stored)

    @router.delete("/topologies/{topology_id}/streams/{stream_id}", dependencies=[can_write])
    def remove_stream_info(
        topology_id: int = Path(...),
        stream_id: int = Path(...),
    ) -> JSONResponse:
        try:
            removed = svc.remove_stream_info(topology_id, stream_id)
        except Exception as exc:
            return respond_exception(exc)
        if removed is None:
            return respond_error(status.HTTP_404_NOT_FOUND, ResponseMessage.ENTITY_NOT_FOUND, str(stream_id))
        return respond_entity(removed)

    return router
