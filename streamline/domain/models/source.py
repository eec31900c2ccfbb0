"""Source component model."""
from __future__ import annotations

from typing import Any, ClassVar, Dict, List

from pydantic import Field

from streamline.domain.models.base import Storable
from streamline.domain.models.stream import StreamInfo


class TopologySource(Storable):
    """Source component within a topology version (e.g. a KAFKA spout).

    ``output_streams`` is accepted on create (the streams are created and their
    ids recorded) and filled in on reads; only ``output_stream_ids`` is stored.
    """

    NAME_SPACE: ClassVar[str] = "topology_sources"
    PRIMARY_KEY: ClassVar[tuple[str, ...]] = ("id", "version_id")
    TRANSIENT_FIELDS: ClassVar[frozenset[str]] = frozenset({"output_streams"})

    id: int | None = None
    topology_id: int | None = None
    version_id: int | None = None
    name: str = Field(..., min_length=1, examples=["kafkaDataSource"])
    type: str = Field(..., min_length=1, examples=["KAFKA"])
    config: Dict[str, Any] = Field(default_factory=dict)
    output_stream_ids: List[int] = Field(default_factory=list)
    output_streams: List[StreamInfo] | None = None
    version_timestamp: int | None = None
