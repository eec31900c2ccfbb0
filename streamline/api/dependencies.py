"""Global reusable FastAPI dependencies (principal, authorization)."""
from typing import Awaitable, Callable, Optional

from fastapi import Request

from streamline.core.exceptions import AuthorizationError
from streamline.security.authorizer import Action, Authorizer


def get_principal(request: Request) -> Optional[str]:
    """Principal established by the request filter, None for anonymous calls."""
    return getattr(request.state, "principal", None)


def require_permission(
    authorizer: Authorizer, action: Action, resource: str
) -> Callable[[Request], Awaitable[Optional[str]]]:
    """Build a dependency that raises `AuthorizationError` unless *action* is allowed."""

    async def _check(request: Request) -> Optional[str]:
        principal = get_principal(request)
        if not authorizer.authorize(principal, action, resource):
            raise AuthorizationError(principal)
        return principal

    return _check
