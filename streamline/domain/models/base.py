"""Common base for everything the storage layer persists."""
from __future__ import annotations

from typing import Any, ClassVar, Dict, NamedTuple, Tuple

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StorableKey(NamedTuple):
    """Namespace plus primary-key values; hashable so it can index a dict."""

    namespace: str
    primary_key: Tuple[Any, ...]


class Storable(BaseModel):
    """A record with a namespace and a primary key.

    Subclasses set ``NAME_SPACE`` and ``PRIMARY_KEY`` (snake_case field names).
    Fields listed in ``TRANSIENT_FIELDS`` are part of API payloads but never
    persisted.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    NAME_SPACE: ClassVar[str] = ""
    PRIMARY_KEY: ClassVar[Tuple[str, ...]] = ("id",)
    TRANSIENT_FIELDS: ClassVar[frozenset[str]] = frozenset()

    def primary_key(self) -> Tuple[Any, ...]:
        return tuple(getattr(self, name) for name in self.PRIMARY_KEY)

    def storable_key(self) -> StorableKey:
        return StorableKey(self.NAME_SPACE, self.primary_key())

    def to_storage(self) -> Dict[str, Any]:
        """JSON-compatible dict of the persisted fields, camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude=set(self.TRANSIENT_FIELDS))

    @classmethod
    def from_storage(cls, data: Dict[str, Any]):
        return cls.model_validate(data)

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
