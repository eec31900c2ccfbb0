"""Authorizer plugins consulted by the catalog resources."""
from __future__ import annotations

import abc
import logging
from enum import Enum
from typing import Any, Dict, Optional, Set

logger = logging.getLogger(__name__)

CONF_ADMIN_PRINCIPALS = "admin_principals"


class Action(str, Enum):
    READ = "READ"
    WRITE = "WRITE"


class Authorizer(abc.ABC):
    """Decides whether *principal* may perform *action* on a resource type."""

    def init(self, config: Dict[str, Any]) -> None:
        """Configure the authorizer; called once at startup."""

    @abc.abstractmethod
    def authorize(self, principal: Optional[str], action: Action, resource: str) -> bool: ...


class NoopAuthorizer(Authorizer):
    """Allows everything; installed when no authorizer is configured."""

    def authorize(self, principal: Optional[str], action: Action, resource: str) -> bool:
        return True


class DefaultAuthorizer(Authorizer):
    """Admin principals may do anything; other authenticated principals may only read."""

    def __init__(self) -> None:
        self.admin_principals: Set[str] = set()

    def init(self, config: Dict[str, Any]) -> None:
        self.admin_principals = set(config.get(CONF_ADMIN_PRINCIPALS) or [])
        logger.info("Authorizer admin principals: %s", sorted(self.admin_principals))

    def authorize(self, principal: Optional[str], action: Action, resource: str) -> bool:
        if not principal:
            return False
        if principal in self.admin_principals:
            return True
        allowed = action == Action.READ
        if not allowed:
            logger.debug("Denied %s on %s for principal %s", action.value, resource, principal)
        return allowed
