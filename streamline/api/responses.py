"""The ``{responseCode, responseMessage, entity|entities}`` envelope."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Iterable

from fastapi import status
from fastapi.responses import JSONResponse

from streamline.core.exceptions import EntityNotFoundError
from streamline.domain.models.base import Storable

logger = logging.getLogger(__name__)


class ResponseMessage(Enum):
    SUCCESS = (1000, "Success")
    BAD_REQUEST = (1001, "Bad request. {}")
    ENTITY_NOT_FOUND = (1101, "Entity with id [{}] not found.")
    EXCEPTION = (1102, "An exception with message [{}] was thrown while processing request.")
    ENTITY_NOT_FOUND_FOR_FILTER = (1103, "Entity not found for query params [{}].")
    UNAUTHORIZED = (1401, "Not authenticated. {}")
    FORBIDDEN = (1403, "Principal [{}] is not authorized to perform this operation.")

    def __init__(self, code: int, template: str) -> None:
        self.code = code
        self.template = template

    def format(self, *args: Any) -> str:
        return self.template.format(*args)


def _payload(obj: Any) -> Any:
    if isinstance(obj, Storable):
        return obj.to_response()
    return obj


def respond_entity(entity: Any, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "responseCode": ResponseMessage.SUCCESS.code,
            "responseMessage": ResponseMessage.SUCCESS.format(),
            "entity": _payload(entity),
        },
    )


def respond_entities(entities: Iterable[Any], status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "responseCode": ResponseMessage.SUCCESS.code,
            "responseMessage": ResponseMessage.SUCCESS.format(),
            "entities": [_payload(e) for e in entities],
        },
    )


def respond_error(status_code: int, message: ResponseMessage, *args: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"responseCode": message.code, "responseMessage": message.format(*args)},
    )


def respond_exception(exc: Exception) -> JSONResponse:
    """404 for a missing entity, 500 with the exception message for anything else."""
    if isinstance(exc, EntityNotFoundError):
        return respond_error(status.HTTP_404_NOT_FOUND, ResponseMessage.ENTITY_NOT_FOUND, str(exc))
    logger.error("Catalog request failed: %s", exc, exc_info=exc)
    return respond_error(status.HTTP_500_INTERNAL_SERVER_ERROR, ResponseMessage.EXCEPTION, str(exc))
