"""Source components within a topology: list, get (current or by version), create, update, delete."""
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
from streamline.domain.models.source import TopologySource
from streamline.domain.services.stream_catalog_service import StreamCatalogService
from streamline.security.authorizer import Action, Authorizer

RESOURCE = "topology_source"


def _composite_id(topology_id: int, source_id: int) -> str:
    return f"topology id <{topology_id}>, source id <{source_id}>"


def build_router(svc: StreamCatalogService, authorizer: Authorizer) -> APIRouter:
    """Bind the source resource to *svc*; every route checks *authorizer* first."""
    router = APIRouter(prefix=CATALOG_PREFIX, tags=["sources"])
    can_read = Depends(require_permission(authorizer, Action.READ, RESOURCE))
    can_write = Depends(require_permission(authorizer, Action.WRITE, RESOURCE))

    def _list(request: Request, topology_id: int, version_id: int | None) -> JSONResponse:
        try:
            resolved = resolve_version_id(svc, topology_id, version_id)
            if resolved is None:
                return filter_not_found(topology_id, version_id, request)
            params = topology_version_query_params(topology_id, resolved, request)
            return respond_entities(svc.list_topology_sources(params))
        except Exception as exc:
            return respond_exception(exc)

    def _get(topology_id: int, source_id: int, version_id: int | None) -> JSONResponse:
        try:
            source = svc.get_topology_source(topology_id, source_id, version_id)
        except Exception as exc:
            return respond_exception(exc)
        if source is None:
            return respond_error(
                status.HTTP_404_NOT_FOUND, ResponseMessage.ENTITY_NOT_FOUND, _composite_id(topology_id, source_id)
            )
        return respond_entity(source)

    # ---------- routes -------------------------------------------------------------
    @router.get("/topologies/{topology_id}/sources", dependencies=[can_read])
    def list_topology_sources(
        request: Request,
        topology_id: int = Path(..., description="Topology ID"),
    ) -> JSONResponse:
        """List the sources of the CURRENT version, filtered by any query params."""
        return _list(request, topology_id, None)

    @router.get("/topologies/{topology_id}/versions/{version_id}/sources", dependencies=[can_read])
    def list_topology_sources_for_version(
        request: Request,
        topology_id: int = Path(...),
        version_id: int = Path(..., description="Topology version ID"),
    ) -> JSONResponse:
        return _list(request, topology_id, version_id)

    @router.get("/topologies/{topology_id}/sources/{source_id}", dependencies=[can_read])
    def get_topology_source_by_id(
        topology_id: int = Path(...),
        source_id: int = Path(..., description="Source ID"),
    ) -> JSONResponse:
        """Return the CURRENT version of the source."""
        return _get(topology_id, source_id, None)

    @router.get("/topologies/{topology_id}/versions/{version_id}/sources/{source_id}", dependencies=[can_read])
    def get_topology_source_by_id_and_version(
        topology_id: int = Path(...),
        version_id: int = Path(...),
        source_id: int = Path(...),
    ) -> JSONResponse:
        return _get(topology_id, source_id, version_id)

    @router.post("/topologies/{topology_id}/sources", dependencies=[can_write])
    def add_topology_source(
        source: TopologySource,
        topology_id: int = Path(...),
    ) -> JSONResponse:
        """Create a source; inline ``outputStreams`` are created alongside it."""
        try:
            created = svc.add_topology_source(topology_id, source)
        except Exception as exc:
            return respond_exception(exc)
        return respond_entity(created, status.HTTP_201_CREATED)

    @router.put("/topologies/{topology_id}/sources/{source_id}", dependencies=[can_write])
    def add_or_update_topology_source(
        source: TopologySource,
        topology_id: int = Path(...),
        source_id: int = Path(...),
    ) -> JSONResponse:
        try:
            stored = svc.add_or_update_topology_source(topology_id, source_id, source)
        except Exception as exc:
            return respond_exception(exc)
        return respond_entity(stored, status.HTTP_201_CREATED)

    @router.delete("/topologies/{topology_id}/sources/{source_id}", dependencies=[can_write])
    def remove_topology_source(
        topology_id: int = Path(...),
        source_id: int = Path(...),
    ) -> JSONResponse:
        try:
            removed = svc.remove_topology_source(topology_id, source_id)
        except Exception as exc:
            return respond_exception(exc)
        if removed is None:
            return respond_error(status.HTTP_404_NOT_FOUND, ResponseMessage.ENTITY_NOT_FOUND, str(source_id))
        return respond_entity(removed)

    return router
