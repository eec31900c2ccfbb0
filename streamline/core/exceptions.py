"""Exception hierarchy shared by the storage, catalog and security layers."""
from __future__ import annotations


class StreamlineError(Exception):
    """Base class for every error raised by the catalog service."""


class EntityNotFoundError(StreamlineError, KeyError):
    """Raised when a requested entity does not exist (maps to HTTP 404)."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(entity_id)
        self.entity_id = entity_id

    def __str__(self) -> str:
        return self.entity_id


class StorageError(StreamlineError):
    """A storage provider could not complete an operation."""


class AlreadyExistsError(StorageError):
    """Raised by `StorageManager.add` when the key is already taken."""


class ConfigurationError(StreamlineError):
    """Invalid or unloadable configuration (bad class path, missing section)."""


class AuthenticationError(StreamlineError):
    """The request carries no usable credentials."""


class AuthorizationError(StreamlineError):
    """The authenticated principal may not perform the operation."""

    def __init__(self, principal: str | None) -> None:
        super().__init__(principal or "anonymous")
        self.principal = principal or "anonymous"
