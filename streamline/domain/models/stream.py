"""Stream schema records: the named, typed outputs of topology components."""
from __future__ import annotations

from enum import Enum
from typing import ClassVar, List

from pydantic import BaseModel, ConfigDict, Field

from streamline.domain.models.base import Storable


class FieldType(str, Enum):
    BOOLEAN = "BOOLEAN"
    BYTE = "BYTE"
    SHORT = "SHORT"
    INTEGER = "INTEGER"
    LONG = "LONG"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    STRING = "STRING"
    BINARY = "BINARY"
    NESTED = "NESTED"
    ARRAY = "ARRAY"
    BLOB = "BLOB"


class SchemaField(BaseModel):
    """One column of a stream schema."""

    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(..., min_length=1)
    type: FieldType
    optional: bool = False


class StreamInfo(Storable):
    """Schema of a stream flowing between components of a topology version."""

    NAME_SPACE: ClassVar[str] = "topology_streams"
    PRIMARY_KEY: ClassVar[tuple[str, ...]] = ("id", "version_id")

    id: int | None = None
    topology_id: int | None = None
    version_id: int | None = None
    stream_id: str = Field(..., pattern=r"^[\w\-.]+$", examples=["default"])
    schema_fields: List[SchemaField] = Field(..., alias="fields", min_length=1)
    version_timestamp: int | None = None
