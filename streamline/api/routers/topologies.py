"""Topology CRUD plus version listing and version save."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Request, status
from fastapi.responses import JSONResponse

from streamline.api.dependencies import require_permission
from streamline.api.responses import (
    ResponseMessage,
    respond_entities,
    respond_entity,
    respond_error,
    respond_exception,
)
from streamline.api.routers.common import CATALOG_PREFIX
from streamline.domain.models.topology import Topology, TopologyVersionInfo
from streamline.domain.services.stream_catalog_service import StreamCatalogService
from streamline.infra.storage.base import QueryParam
from streamline.security.authorizer import Action, Authorizer

RESOURCE = "topology"


def build_router(svc: StreamCatalogService, authorizer: Authorizer) -> APIRouter:
    router = APIRouter(prefix=CATALOG_PREFIX, tags=["topologies"])
    can_read = Depends(require_permission(authorizer, Action.READ, RESOURCE))
    can_write = Depends(require_permission(authorizer, Action.WRITE, RESOURCE))

    def _not_found(entity_id: int) -> JSONResponse:
        return respond_error(status.HTTP_404_NOT_FOUND, ResponseMessage.ENTITY_NOT_FOUND, str(entity_id))

    # ---------- versions -----------------------------------------------------------
    @router.get("/topologies/versions/{version_id}", dependencies=[can_read])
    def get_topology_version_info(version_id: int = Path(...)) -> JSONResponse:
        try:
            version = svc.get_topology_version_info(version_id)
        except Exception as exc:
            return respond_exception(exc)
        if version is None:
            return _not_found(version_id)
        return respond_entity(version)

    @router.get("/topologies/{topology_id}/versions", dependencies=[can_read])
    def list_topology_versions(topology_id: int = Path(...)) -> JSONResponse:
        try:
            return respond_entities(svc.list_topology_version_infos(topology_id))
        except Exception as exc:
            return respond_exception(exc)

    @router.post("/topologies/{topology_id}/versions/save", dependencies=[can_write])
    def save_topology_version(
        topology_id: int = Path(...),
        version_info: Optional[TopologyVersionInfo] = Body(default=None),
    ) -> JSONResponse:
        """Freeze CURRENT as the next ``V<n>``; the body may carry a description."""
        try:
            saved = svc.save_topology_version(topology_id, version_info)
        except Exception as exc:
            return respond_exception(exc)
        return respond_entity(saved, status.HTTP_201_CREATED)

    # ---------- topologies ---------------------------------------------------------
    @router.get("/topologies", dependencies=[can_read])
    def list_topologies(request: Request) -> JSONResponse:
        params = [QueryParam(name, value) for name, value in request.query_params.multi_items()]
        try:
            return respond_entities(svc.list_topologies(params))
        except Exception as exc:
            return respond_exception(exc)

    @router.get("/topologies/{topology_id}", dependencies=[can_read])
    def get_topology_by_id(topology_id: int = Path(...)) -> JSONResponse:
        try:
            topology = svc.get_topology(topology_id)
        except Exception as exc:
            return respond_exception(exc)
        if topology is None:
            return _not_found(topology_id)
        return respond_entity(topology)

    @router.get("/topologies/{topology_id}/versions/{version_id}", dependencies=[can_read])
    def get_topology_by_id_and_version(
        topology_id: int = Path(...),
        version_id: int = Path(...),
    ) -> JSONResponse:
        try:
            topology = svc.get_topology(topology_id, version_id)
        except Exception as exc:
            return respond_exception(exc)
        if topology is None:
            return _not_found(topology_id)
        return respond_entity(topology)

    @router.post("/topologies", dependencies=[can_write])
    def add_topology(topology: Topology) -> JSONResponse:
        try:
            created = svc.add_topology(topology)
        except Exception as exc:
            return respond_exception(exc)
        return respond_entity(created, status.HTTP_201_CREATED)

    @router.put("/topologies/{topology_id}", dependencies=[can_write])
    def add_or_update_topology(
        topology: Topology,
        topology_id: int = Path(...),
    ) -> JSONResponse:
        try:
            stored = svc.add_or_update_topology(topology_id, topology)
        except Exception as exc:
            return respond_exception(exc)
        return respond_entity(stored)

    @router.delete("/topologies/{topology_id}", dependencies=[can_write])
    def remove_topology(topology_id: int = Path(...)) -> JSONResponse:
        try:
            removed = svc.remove_topology(topology_id)
        except Exception as exc:
            return respond_exception(exc)
        if removed is None:
            return _not_found(topology_id)
        return respond_entity(removed)

    return router
