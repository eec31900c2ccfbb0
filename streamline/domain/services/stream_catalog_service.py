"""Facade over the storage manager for topology metadata.

Versioning model: each topology has exactly one editable version named
``CURRENT``; saving a version freezes it as ``V<n>`` and clones its content
into a fresh ``CURRENT``. Component ids are preserved across versions, so a
record is addressed by ``(id, version_id)``.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

from streamline.core.exceptions import EntityNotFoundError
from streamline.domain.models.base import Storable, StorableKey
from streamline.domain.models.source import TopologySource
from streamline.domain.models.stream import StreamInfo
from streamline.domain.models.topology import (
    CURRENT_VERSION,
    VERSION_PREFIX,
    Topology,
    TopologyVersionInfo,
    version_suffix,
)
from streamline.infra.storage.base import QueryParam, StorageManager

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Storable)

STORABLE_ENTITIES = (TopologyVersionInfo, Topology, TopologySource, StreamInfo)


def _now_ms() -> int:
    return int(time.time() * 1000)


def topology_version_params(topology_id: int, version_id: int) -> List[QueryParam]:
    return [QueryParam("topologyId", str(topology_id)), QueryParam("versionId", str(version_id))]


class StreamCatalogService:
    """Coordinates versioned CRUD of topologies, sources and streams."""

    def __init__(self, storage: StorageManager, clock: Callable[[], int] | None = None) -> None:
        self._storage = storage
        self._clock = clock or _now_ms

    # ------------------------------------------------------------------ #
    # Versions                                                           #
    # ------------------------------------------------------------------ #
    def list_topology_version_infos(self, topology_id: int) -> List[TopologyVersionInfo]:
        return self._find(TopologyVersionInfo, [QueryParam("topologyId", str(topology_id))])

    def get_topology_version_info(self, version_id: int) -> Optional[TopologyVersionInfo]:
        return self._storage.get(StorableKey(TopologyVersionInfo.NAME_SPACE, (version_id,)))

    def get_current_version_info(self, topology_id: int) -> Optional[TopologyVersionInfo]:
        found = self._find(
            TopologyVersionInfo,
            [QueryParam("topologyId", str(topology_id)), QueryParam("name", CURRENT_VERSION)],
        )
        return found[0] if found else None

    def get_current_topology_version_id(self, topology_id: int) -> int:
        """Return the id of the CURRENT version or raise `EntityNotFoundError`."""
        current = self.get_current_version_info(topology_id)
        if current is None:
            raise EntityNotFoundError(f"current version of topology id <{topology_id}>")
        return current.id

    def add_topology_version_info(self, version_info: TopologyVersionInfo) -> TopologyVersionInfo:
        stored = version_info.model_copy(
            update={"id": self._storage.next_id(TopologyVersionInfo.NAME_SPACE), "timestamp": self._clock()}
        )
        self._storage.add(stored)
        return stored

    def add_or_update_topology_version_info(
        self, version_id: int, version_info: TopologyVersionInfo
    ) -> TopologyVersionInfo:
        stored = version_info.model_copy(update={"id": version_id, "timestamp": self._clock()})
        self._storage.add_or_update(stored)
        return stored

    def save_topology_version(
        self, topology_id: int, version_info: TopologyVersionInfo | None = None
    ) -> TopologyVersionInfo:
        """Freeze the CURRENT version as ``V<n>`` and open a new CURRENT copy of it."""
        current = self.get_current_version_info(topology_id)
        if current is None:
            raise EntityNotFoundError(f"current version of topology id <{topology_id}>")
        latest = max(
            (version_suffix(v.name) for v in self.list_topology_version_infos(topology_id) if not v.is_current),
            default=0,
        )
        saved = self.add_or_update_topology_version_info(
            current.id,
            TopologyVersionInfo(
                topology_id=topology_id,
                name=f"{VERSION_PREFIX}{latest + 1}",
                description=(version_info.description if version_info else None) or "",
            ),
        )
        new_current = self.clone_topology_version(topology_id, saved.id)
        logger.info(
            "Saved topology %s as version %s (id %s); new CURRENT version id %s",
            topology_id, saved.name, saved.id, new_current.id,
        )
        return saved

    def clone_topology_version(self, topology_id: int, version_id: int) -> TopologyVersionInfo:
        """Copy the topology and its components at *version_id* into a new CURRENT version."""
        new_version = self.add_topology_version_info(
            TopologyVersionInfo(topology_id=topology_id, name=CURRENT_VERSION, description="")
        )
        ts = self._clock()
        clone = {"version_id": new_version.id, "version_timestamp": ts}
        topology = self._storage.get(StorableKey(Topology.NAME_SPACE, (topology_id, version_id)))
        if topology is not None:
            self._storage.add(topology.model_copy(update=clone))
        params = topology_version_params(topology_id, version_id)
        for stream in self._find(StreamInfo, params):
            self._storage.add(stream.model_copy(update=clone))
        for source in self._find(TopologySource, params):
            self._storage.add(source.model_copy(update=clone))
        return new_version

    # ------------------------------------------------------------------ #
    # Topologies                                                         #
    # ------------------------------------------------------------------ #
    def list_topologies(self, query_params: Iterable[QueryParam] | None = None) -> List[Topology]:
        """Return topologies matching *query_params*; CURRENT versions unless versionId is given."""
        params = list(query_params or [])
        topologies = self._find(Topology, params)
        if any(p.name == "versionId" for p in params):
            return topologies
        current_ids = {
            v.id for v in self._storage.find(TopologyVersionInfo.NAME_SPACE, [QueryParam("name", CURRENT_VERSION)])
        }
        return [t for t in topologies if t.version_id in current_ids]

    def get_topology(self, topology_id: int, version_id: int | None = None) -> Optional[Topology]:
        version_id = self._resolve_version(topology_id, version_id)
        if version_id is None:
            return None
        return self._storage.get(StorableKey(Topology.NAME_SPACE, (topology_id, version_id)))

    def add_topology(self, topology: Topology) -> Topology:
        topology_id = self._storage.next_id(Topology.NAME_SPACE)
        return self._create_topology(topology_id, topology)

    def add_or_update_topology(self, topology_id: int, topology: Topology) -> Topology:
        current = self.get_current_version_info(topology_id)
        if current is None:
            return self._create_topology(topology_id, topology)
        stored = topology.model_copy(
            update={"id": topology_id, "version_id": current.id, "version_timestamp": self._clock()}
        )
        self._storage.add_or_update(stored)
        self._touch_version(current)
        return stored

    def remove_topology(self, topology_id: int) -> Optional[Topology]:
        """Remove every version of the topology with all its components."""
        removed = self.get_topology(topology_id)
        versions = self.list_topology_version_infos(topology_id)
        if removed is None and not versions:
            return None
        by_topology = [QueryParam("topologyId", str(topology_id))]
        for cls in (TopologySource, StreamInfo):
            for component in self._find(cls, by_topology):
                self._storage.remove(component.storable_key())
        for version in versions:
            self._storage.remove(StorableKey(Topology.NAME_SPACE, (topology_id, version.id)))
            self._storage.remove(version.storable_key())
        logger.info("Removed topology %s (%d version(s))", topology_id, len(versions))
        return removed

    def _create_topology(self, topology_id: int, topology: Topology) -> Topology:
        version = self.add_topology_version_info(
            TopologyVersionInfo(topology_id=topology_id, name=CURRENT_VERSION, description="")
        )
        stored = topology.model_copy(
            update={"id": topology_id, "version_id": version.id, "version_timestamp": version.timestamp}
        )
        self._storage.add(stored)
        return stored

    # ------------------------------------------------------------------ #
    # Streams                                                            #
    # ------------------------------------------------------------------ #
    def list_stream_infos(self, query_params: Iterable[QueryParam]) -> List[StreamInfo]:
        return self._find(StreamInfo, query_params)

    def get_stream_info(
        self, topology_id: int, stream_id: int, version_id: int | None = None
    ) -> Optional[StreamInfo]:
        return self._get_component(StreamInfo, topology_id, stream_id, version_id)

    def add_stream_info(self, topology_id: int, stream_info: StreamInfo) -> StreamInfo:
        version = self._current_version(topology_id)
        stored = self._place(stream_info, self._storage.next_id(StreamInfo.NAME_SPACE), topology_id, version)
        self._validate_stream_id(stored)
        self._storage.add(stored)
        self._touch_version(version)
        return stored

    def add_or_update_stream_info(self, topology_id: int, stream_id: int, stream_info: StreamInfo) -> StreamInfo:
        version = self._current_version(topology_id)
        stored = self._place(stream_info, stream_id, topology_id, version)
        self._validate_stream_id(stored)
        self._storage.add_or_update(stored)
        self._touch_version(version)
        return stored

    def remove_stream_info(self, topology_id: int, stream_id: int) -> Optional[StreamInfo]:
        version = self._current_version(topology_id)
        existing = self.get_stream_info(topology_id, stream_id, version.id)
        if existing is None:
            return None
        users = [
            s.id
            for s in self._find(TopologySource, topology_version_params(topology_id, version.id))
            if stream_id in s.output_stream_ids
        ]
        if users:
            raise ValueError(f"Stream id {stream_id} is an output stream of source(s) {users}")
        removed = self._storage.remove(existing.storable_key())
        self._touch_version(version)
        return removed

    def _validate_stream_id(self, stream_info: StreamInfo) -> None:
        for other in self._find(
            StreamInfo, topology_version_params(stream_info.topology_id, stream_info.version_id)
        ):
            if other.stream_id == stream_info.stream_id and other.id != stream_info.id:
                raise ValueError(
                    f"Stream with streamId '{stream_info.stream_id}' already exists in topology "
                    f"{stream_info.topology_id} (stream id {other.id})"
                )

    # ------------------------------------------------------------------ #
    # Sources                                                            #
    # ------------------------------------------------------------------ #
    def list_topology_sources(self, query_params: Iterable[QueryParam]) -> List[TopologySource]:
        return [self._fill_output_streams(s) for s in self._find(TopologySource, query_params)]

    def get_topology_source(
        self, topology_id: int, source_id: int, version_id: int | None = None
    ) -> Optional[TopologySource]:
        source = self._get_component(TopologySource, topology_id, source_id, version_id)
        return self._fill_output_streams(source) if source is not None else None

    def add_topology_source(self, topology_id: int, source: TopologySource) -> TopologySource:
        version = self._current_version(topology_id)
        source_id = self._storage.next_id(TopologySource.NAME_SPACE)
        return self._store_source(source, source_id, topology_id, version, self._storage.add)

    def add_or_update_topology_source(
        self, topology_id: int, source_id: int, source: TopologySource
    ) -> TopologySource:
        version = self._current_version(topology_id)
        return self._store_source(source, source_id, topology_id, version, self._storage.add_or_update)

    def remove_topology_source(self, topology_id: int, source_id: int) -> Optional[TopologySource]:
        """Remove the source and the output streams no other source uses."""
        version = self._current_version(topology_id)
        source = self.get_topology_source(topology_id, source_id, version.id)
        if source is None:
            return None
        self._storage.remove(source.storable_key())
        still_used = {
            sid
            for other in self._find(TopologySource, topology_version_params(topology_id, version.id))
            for sid in other.output_stream_ids
        }
        for stream_id in source.output_stream_ids:
            if stream_id not in still_used:
                self._storage.remove(StorableKey(StreamInfo.NAME_SPACE, (stream_id, version.id)))
        self._touch_version(version)
        return source

    def _store_source(
        self,
        source: TopologySource,
        source_id: int,
        topology_id: int,
        version: TopologyVersionInfo,
        write: Callable[[Storable], None],
    ) -> TopologySource:
        stream_ids = list(source.output_stream_ids)
        for stream in source.output_streams or []:
            stream_ids.append(self.add_stream_info(topology_id, stream).id)
        for stream_id in stream_ids:
            if self.get_stream_info(topology_id, stream_id, version.id) is None:
                raise ValueError(
                    f"Output stream id {stream_id} does not exist in topology {topology_id} "
                    f"version {version.id}"
                )
        stored = self._place(source, source_id, topology_id, version).model_copy(
            update={"output_stream_ids": stream_ids, "output_streams": None}
        )
        write(stored)
        self._touch_version(version)
        return self._fill_output_streams(stored)

    def _fill_output_streams(self, source: TopologySource) -> TopologySource:
        streams = [
            self.get_stream_info(source.topology_id, sid, source.version_id) for sid in source.output_stream_ids
        ]
        return source.model_copy(update={"output_streams": [s for s in streams if s is not None]})

    # ------------------------------------------------------------------ #
    # helpers                                                            #
    # ------------------------------------------------------------------ #
    def _find(self, cls: type[S], query_params: Iterable[QueryParam] | None) -> List[S]:
        return sorted(self._storage.find(cls.NAME_SPACE, query_params), key=lambda s: s.primary_key())

    def _resolve_version(self, topology_id: int, version_id: int | None) -> Optional[int]:
        if version_id is not None:
            return version_id
        current = self.get_current_version_info(topology_id)
        return current.id if current else None

    def _current_version(self, topology_id: int) -> TopologyVersionInfo:
        current = self.get_current_version_info(topology_id)
        if current is None:
            raise EntityNotFoundError(f"current version of topology id <{topology_id}>")
        return current

    def _get_component(self, cls: type[S], topology_id: int, component_id: int, version_id: int | None) -> Optional[S]:
        version_id = self._resolve_version(topology_id, version_id)
        if version_id is None:
            return None
        component = self._storage.get(StorableKey(cls.NAME_SPACE, (component_id, version_id)))
        # a component reached through another topology's path does not exist there
        if component is None or component.topology_id != topology_id:
            return None
        return component

    def _place(self, component: S, component_id: int, topology_id: int, version: TopologyVersionInfo) -> S:
        return component.model_copy(
            update={
                "id": component_id,
                "topology_id": topology_id,
                "version_id": version.id,
                "version_timestamp": self._clock(),
            }
        )

    def _touch_version(self, version: TopologyVersionInfo) -> None:
        self._storage.add_or_update(version.model_copy(update={"timestamp": self._clock()}))


def storable_entities() -> Sequence[type[Storable]]:
    """Entity classes the catalog persists, for `StorageManager.register_storables`."""
    return STORABLE_ENTITIES
