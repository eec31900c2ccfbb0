"""Storage-provider contracts.

A provider is picked by dotted class path at startup, instantiated without
arguments and then configured through :meth:`StorageManager.init`.
"""
from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Type

from streamline.core.exceptions import StorageError
from streamline.domain.models.base import Storable, StorableKey


@dataclass(frozen=True)
class QueryParam:
    """Equality filter on a camelCase field of a stored record."""

    name: str
    value: str

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


def _as_query_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def matches(storable: Storable, query_params: Iterable[QueryParam]) -> bool:
    """Return True when *storable* satisfies every param (unknown fields never match)."""
    data = storable.to_storage()
    for param in query_params:
        if param.name not in data or data[param.name] is None:
            return False
        if _as_query_text(data[param.name]) != param.value:
            return False
    return True


class TransactionManager(abc.ABC):
    """Unit-of-work demarcation driven once per request.

    ``begin_transaction`` is called on the event loop and must not block; it
    binds the transaction to the request's context. Commit and rollback run
    in a worker thread that sees that context.
    """

    @abc.abstractmethod
    def begin_transaction(self) -> None: ...

    @abc.abstractmethod
    def commit_transaction(self) -> None: ...

    @abc.abstractmethod
    def rollback_transaction(self) -> None: ...


class NoopTransactionManager(TransactionManager):
    """Used when the storage provider has no transaction support."""

    def begin_transaction(self) -> None:
        pass

    def commit_transaction(self) -> None:
        pass

    def rollback_transaction(self) -> None:
        pass


class StorageManager(abc.ABC):
    """Generic key/value style store of `Storable` records grouped by namespace."""

    def __init__(self) -> None:
        self._storables: Dict[str, Type[Storable]] = {}

    def init(self, properties: Dict[str, Any]) -> None:
        """Configure the provider from ``storage.properties``."""

    def register_storables(self, classes: Iterable[Type[Storable]]) -> None:
        for cls in classes:
            if not cls.NAME_SPACE:
                raise StorageError(f"{cls.__name__} does not declare a NAME_SPACE")
            self._storables[cls.NAME_SPACE] = cls

    def storable_class(self, namespace: str) -> Type[Storable]:
        try:
            return self._storables[namespace]
        except KeyError:
            raise StorageError(f"No storable registered for namespace '{namespace}'") from None

    # ------------------------------------------------------------------ #
    # CRUD                                                               #
    # ------------------------------------------------------------------ #
    @abc.abstractmethod
    def add(self, storable: Storable) -> None:
        """Insert *storable*; raise `AlreadyExistsError` if its key is taken."""

    @abc.abstractmethod
    def add_or_update(self, storable: Storable) -> None: ...

    @abc.abstractmethod
    def remove(self, key: StorableKey) -> Optional[Storable]:
        """Delete and return the record under *key*, or None when absent."""

    @abc.abstractmethod
    def get(self, key: StorableKey) -> Optional[Storable]: ...

    @abc.abstractmethod
    def list(self, namespace: str) -> List[Storable]: ...

    @abc.abstractmethod
    def next_id(self, namespace: str) -> int:
        """Return a fresh id for *namespace* (monotonic, starting at 1)."""

    def exists(self, key: StorableKey) -> bool:
        return self.get(key) is not None

    def find(self, namespace: str, query_params: Iterable[QueryParam] | None = None) -> List[Storable]:
        params = list(query_params or [])
        return [s for s in self.list(namespace) if matches(s, params)]

    def close(self) -> None:
        """Release provider resources; called on application shutdown."""
