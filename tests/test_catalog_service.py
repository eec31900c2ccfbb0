import pytest

from streamline.core.exceptions import EntityNotFoundError
from streamline.domain.models.source import TopologySource
from streamline.domain.models.stream import StreamInfo
from streamline.domain.models.topology import Topology, TopologyVersionInfo
from streamline.domain.services.stream_catalog_service import topology_version_params
from streamline.infra.storage.base import QueryParam


def _stream(stream_id="default"):
    return StreamInfo(stream_id=stream_id, fields=[{"name": "word", "type": "STRING"}])


def _source(name="kafkaDataSource", **kwargs):
    return TopologySource(name=name, type="KAFKA", **kwargs)


@pytest.fixture
def topology(service):
    return service.add_topology(Topology(name="wordcount", config={"parallelism": 2}))


def test_add_topology_opens_current_version(service, topology):
    versions = service.list_topology_version_infos(topology.id)

    assert topology.id == 1
    assert [(v.id, v.name) for v in versions] == [(1, "CURRENT")]
    assert topology.version_id == versions[0].id
    assert service.get_current_topology_version_id(topology.id) == 1
    assert service.get_topology(topology.id).config == {"parallelism": 2}


def test_current_version_of_unknown_topology_is_not_found(service):
    with pytest.raises(EntityNotFoundError) as excinfo:
        service.get_current_topology_version_id(42)
    assert str(excinfo.value) == "current version of topology id <42>"


def test_add_stream_places_it_in_current_version(service, topology):
    stream = service.add_stream_info(topology.id, _stream())

    assert (stream.id, stream.topology_id, stream.version_id) == (1, topology.id, topology.version_id)
    assert service.get_stream_info(topology.id, stream.id) == stream


def test_duplicate_stream_id_is_rejected(service, topology):
    service.add_stream_info(topology.id, _stream("words"))

    with pytest.raises(ValueError, match="already exists"):
        service.add_stream_info(topology.id, _stream("words"))


def test_update_stream_keeps_its_own_stream_id(service, topology):
    stream = service.add_stream_info(topology.id, _stream("words"))

    updated = service.add_or_update_stream_info(
        topology.id, stream.id, StreamInfo(stream_id="words", fields=[{"name": "n", "type": "LONG"}])
    )
    assert updated.id == stream.id
    assert service.get_stream_info(topology.id, stream.id).schema_fields[0].name == "n"


def test_add_or_update_stream_creates_with_given_id(service, topology):
    stored = service.add_or_update_stream_info(topology.id, 42, _stream())

    assert stored.id == 42
    assert service.get_stream_info(topology.id, 42) is not None


def test_component_is_not_visible_through_another_topology(service, topology):
    other = service.add_topology(Topology(name="other"))
    stream = service.add_stream_info(topology.id, _stream())

    assert service.get_stream_info(other.id, stream.id) is None


def test_source_creates_inline_output_streams(service, topology):
    source = service.add_topology_source(topology.id, _source(output_streams=[_stream("out")]))

    assert source.output_stream_ids == [1]
    assert [s.stream_id for s in source.output_streams] == ["out"]
    fetched = service.get_topology_source(topology.id, source.id)
    assert fetched.output_streams[0].id == 1


def test_source_with_unknown_output_stream_is_rejected(service, topology):
    with pytest.raises(ValueError, match="Output stream id 7 does not exist"):
        service.add_topology_source(topology.id, _source(output_stream_ids=[7]))


def test_source_on_unknown_topology_is_not_found(service):
    with pytest.raises(EntityNotFoundError):
        service.add_topology_source(9, _source())


def test_remove_source_drops_unshared_output_streams(service, topology):
    shared = service.add_stream_info(topology.id, _stream("shared"))
    first = service.add_topology_source(
        topology.id, _source(output_stream_ids=[shared.id], output_streams=[_stream("own")])
    )
    service.add_topology_source(topology.id, _source("second", output_stream_ids=[shared.id]))

    removed = service.remove_topology_source(topology.id, first.id)

    assert removed.id == first.id
    remaining = service.list_stream_infos(topology_version_params(topology.id, topology.version_id))
    assert [s.stream_id for s in remaining] == ["shared"]
    assert service.remove_topology_source(topology.id, first.id) is None


def test_stream_used_by_a_source_cannot_be_removed(service, topology):
    source = service.add_topology_source(topology.id, _source(output_streams=[_stream()]))

    with pytest.raises(ValueError, match="output stream"):
        service.remove_stream_info(topology.id, source.output_stream_ids[0])


def test_mutations_touch_version_timestamp(service, topology):
    before = service.get_current_version_info(topology.id).timestamp

    service.add_stream_info(topology.id, _stream())

    assert service.get_current_version_info(topology.id).timestamp > before


def test_save_version_freezes_current_and_clones_it(service, topology):
    source = service.add_topology_source(topology.id, _source(output_streams=[_stream()]))

    saved = service.save_topology_version(topology.id, TopologyVersionInfo(description="first cut"))

    assert (saved.id, saved.name, saved.description) == (1, "V1", "first cut")
    current = service.get_current_version_info(topology.id)
    assert current.id == 2
    cloned = service.get_topology_source(topology.id, source.id)
    assert (cloned.id, cloned.version_id) == (source.id, current.id)
    assert cloned.output_streams[0].version_id == current.id
    assert service.get_topology(topology.id).name == "wordcount"
    assert service.get_topology(topology.id, saved.id).version_id == saved.id


def test_saved_version_is_unaffected_by_later_edits(service, topology):
    source = service.add_topology_source(topology.id, _source(output_streams=[_stream()]))
    saved = service.save_topology_version(topology.id)

    service.add_or_update_topology_source(
        topology.id, source.id, _source("renamed", output_stream_ids=source.output_stream_ids)
    )

    assert service.get_topology_source(topology.id, source.id).name == "renamed"
    assert service.get_topology_source(topology.id, source.id, saved.id).name == "kafkaDataSource"


def test_version_names_increase(service, topology):
    service.save_topology_version(topology.id)
    second = service.save_topology_version(topology.id)

    names = [v.name for v in service.list_topology_version_infos(topology.id)]
    assert second.name == "V2"
    assert names == ["V1", "V2", "CURRENT"]


def test_list_topologies_returns_current_versions_only(service, topology):
    saved = service.save_topology_version(topology.id)

    assert [t.version_id for t in service.list_topologies()] == [2]
    pinned = service.list_topologies([QueryParam("versionId", str(saved.id))])
    assert [t.version_id for t in pinned] == [saved.id]


def test_add_or_update_topology_creates_missing(service):
    created = service.add_or_update_topology(5, Topology(name="fresh"))

    assert created.id == 5
    assert service.get_current_topology_version_id(5) == created.version_id


def test_remove_topology_removes_all_versions_and_components(service, storage, topology):
    service.add_topology_source(topology.id, _source(output_streams=[_stream()]))
    service.save_topology_version(topology.id)

    removed = service.remove_topology(topology.id)

    assert removed.id == topology.id
    assert service.list_topology_version_infos(topology.id) == []
    for namespace in ("topologies", "topology_sources", "topology_streams", "topology_versioninfos"):
        assert storage.list(namespace) == []
    assert service.remove_topology(topology.id) is None
