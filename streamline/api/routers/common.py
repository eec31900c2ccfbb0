"""Helpers shared by the version-aware catalog resources."""
from __future__ import annotations

from typing import List, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

from streamline.api.responses import ResponseMessage, respond_error
from streamline.domain.services.stream_catalog_service import StreamCatalogService, topology_version_params
from streamline.infra.storage.base import QueryParam

CATALOG_PREFIX = "/v1/catalog"

_SCOPE_PARAMS = {"topologyId", "versionId"}


def _request_filters(request: Request) -> List[QueryParam]:
    return [
        QueryParam(name, value)
        for name, value in request.query_params.multi_items()
        if name not in _SCOPE_PARAMS
    ]


def topology_version_query_params(topology_id: int, version_id: int, request: Request) -> List[QueryParam]:
    """Path scope first, then every request query parameter (path ids win)."""
    return topology_version_params(topology_id, version_id) + _request_filters(request)


def describe_params(params: List[QueryParam]) -> str:
    return ", ".join(str(p) for p in params)


def resolve_version_id(
    svc: StreamCatalogService, topology_id: int, version_id: int | None
) -> Optional[int]:
    """Current version id when *version_id* is None; None when the version is not the topology's."""
    if version_id is None:
        current = svc.get_current_version_info(topology_id)
        return current.id if current else None
    version = svc.get_topology_version_info(version_id)
    if version is None or version.topology_id != topology_id:
        return None
    return version.id


def filter_not_found(topology_id: int, version_id: int | None, request: Request) -> JSONResponse:
    """404 naming the path scope and every request filter."""
    params = [QueryParam("topologyId", str(topology_id))]
    if version_id is not None:
        params.append(QueryParam("versionId", str(version_id)))
    params.extend(_request_filters(request))
    return respond_error(
        status.HTTP_404_NOT_FOUND, ResponseMessage.ENTITY_NOT_FOUND_FOR_FILTER, describe_params(params)
    )
