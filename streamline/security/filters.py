"""Request filters that establish ``request.state.principal`` for /api calls.

A filter is an ASGI middleware class constructed as ``cls(app, settings=...)``.
"""
from __future__ import annotations

import logging

from fastapi import Request, status
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from streamline.api.responses import ResponseMessage, respond_error
from streamline.core.config import Settings
from streamline.core.security import TokenValidationError, principal_from_authorization

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"


class BearerTokenRequestFilter(BaseHTTPMiddleware):
    """Require ``Authorization: Bearer <jwt>`` and expose its ``sub`` claim as the principal."""

    def __init__(self, app: ASGIApp, settings: Settings) -> None:
        super().__init__(app)
        self.settings = settings

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not request.url.path.startswith(API_PREFIX) or request.method == "OPTIONS":
            return await call_next(request)
        try:
            principal = principal_from_authorization(request.headers.get("Authorization"), settings=self.settings)
        except TokenValidationError as exc:
            logger.debug("Rejected %s %s: %s", request.method, request.url.path, exc)
            return respond_error(status.HTTP_401_UNAUTHORIZED, ResponseMessage.UNAUTHORIZED, str(exc))
        request.state.principal = principal
        return await call_next(request)
