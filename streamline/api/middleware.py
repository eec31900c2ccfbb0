"""Request-scoped middlewares installed by the bootstrap."""
from __future__ import annotations

import logging
from typing import Dict, Mapping

from fastapi import Request
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from streamline.infra.storage.base import TransactionManager

logger = logging.getLogger(__name__)

DEFAULT_SECURITY_HEADERS: Dict[str, str] = {
    "X-Frame-Options": "SAMEORIGIN",
    "X-XSS-Protection": "1; mode=block",
    "X-Content-Type-Options": "nosniff",
    "Content-Security-Policy": "script-src 'self'; object-src 'self'",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
}


class TransactionMiddleware(BaseHTTPMiddleware):
    """One transaction per /api request: commit on 2xx/3xx, roll back otherwise."""

    def __init__(self, app: ASGIApp, transaction_manager: TransactionManager, path_prefix: str = "/api/") -> None:
        super().__init__(app)
        self.transaction_manager = transaction_manager
        self.path_prefix = path_prefix

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not request.url.path.startswith(self.path_prefix):
            return await call_next(request)
        tm = self.transaction_manager
        # begin must not block; commit and rollback may wait on the database
        tm.begin_transaction()
        try:
            response = await call_next(request)
        except Exception:
            await run_in_threadpool(tm.rollback_transaction)
            raise
        if response.status_code < 400:
            await run_in_threadpool(tm.commit_transaction)
        else:
            logger.debug("Rolling back transaction for %s %s (%s)", request.method, request.url.path,
                         response.status_code)
            await run_in_threadpool(tm.rollback_transaction)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add fixed security headers unless the response already sets them."""

    def __init__(self, app: ASGIApp, headers: Mapping[str, str] | None = None) -> None:
        super().__init__(app)
        self.headers = dict(DEFAULT_SECURITY_HEADERS if headers is None else headers)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response
