import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from streamline.api.responses import ResponseMessage, respond_error
from streamline.core.exceptions import AuthenticationError, AuthorizationError, EntityNotFoundError

logger = logging.getLogger(__name__)


def _validation_detail(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts)


def install_exception_handlers(app: FastAPI) -> None:
    """Render every error in the catalog envelope (replaces FastAPI's default mappers)."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_: Request, exc: RequestValidationError):
        return respond_error(400, ResponseMessage.BAD_REQUEST, _validation_detail(exc))

    @app.exception_handler(EntityNotFoundError)
    async def not_found_handler(_: Request, exc: EntityNotFoundError):
        return respond_error(404, ResponseMessage.ENTITY_NOT_FOUND, str(exc))

    @app.exception_handler(AuthenticationError)
    async def authentication_handler(_: Request, exc: AuthenticationError):
        return respond_error(401, ResponseMessage.UNAUTHORIZED, str(exc))

    @app.exception_handler(AuthorizationError)
    async def authorization_handler(_: Request, exc: AuthorizationError):
        return respond_error(403, ResponseMessage.FORBIDDEN, exc.principal)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return respond_error(404, ResponseMessage.ENTITY_NOT_FOUND, request.url.path)
        return respond_error(exc.status_code, ResponseMessage.EXCEPTION, exc.detail)

    # Catch-all
    @app.exception_handler(Exception)
    async def unhandled(_: Request, exc: Exception):
        logger.exception("Unhandled error while processing request")
        return respond_error(500, ResponseMessage.EXCEPTION, str(exc))
