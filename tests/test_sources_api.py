from tests.conftest import CATALOG, create_topology, stream_body

KAFKA_SOURCE = {
    "name": "kafkaDataSource",
    "type": "KAFKA",
    "config": {"properties": {"zkUrl": "localhost:2181", "topic": "clicks"}},
    "outputStreams": [stream_body("default")],
}


def _sources(topology_id):
    return f"{CATALOG}/topologies/{topology_id}/sources"


def test_create_then_get_source(client):
    topology = create_topology(client)

    resp = client.post(_sources(topology["id"]), json=KAFKA_SOURCE)
    assert resp.status_code == 201
    body = resp.json()
    assert body["responseCode"] == 1000
    assert body["responseMessage"] == "Success"
    created = body["entity"]
    assert created["id"] == 1
    assert created["topologyId"] == topology["id"]
    assert created["versionId"] == topology["versionId"]
    assert created["outputStreamIds"] == [1]
    assert created["outputStreams"][0]["streamId"] == "default"
    assert created["outputStreams"][0]["fields"] == [{"name": "f1", "type": "STRING", "optional": False}]

    fetched = client.get(f"{_sources(topology['id'])}/1")
    assert fetched.status_code == 200
    assert fetched.json()["entity"]["config"] == KAFKA_SOURCE["config"]


def test_list_sources_filters_by_query_params(client):
    topology = create_topology(client)
    client.post(_sources(topology["id"]), json=KAFKA_SOURCE)

    assert len(client.get(_sources(topology["id"])).json()["entities"]) == 1
    assert len(client.get(_sources(topology["id"]), params={"type": "KAFKA"}).json()["entities"]) == 1
    resp = client.get(_sources(topology["id"]), params={"name": "other"})
    assert resp.status_code == 200
    assert resp.json()["entities"] == []


def test_list_sources_of_unknown_topology(client):
    resp = client.get(_sources(99))

    assert resp.status_code == 404
    assert resp.json() == {
        "responseCode": 1103,
        "responseMessage": "Entity not found for query params [topologyId=99].",
    }


def test_get_missing_source(client):
    topology = create_topology(client)

    resp = client.get(f"{_sources(topology['id'])}/5")

    assert resp.status_code == 404
    assert resp.json()["responseCode"] == 1101
    assert resp.json()["responseMessage"] == "Entity with id [topology id <1>, source id <5>] not found."


def test_update_source(client):
    topology = create_topology(client)
    client.post(_sources(topology["id"]), json=KAFKA_SOURCE)

    resp = client.put(
        f"{_sources(topology['id'])}/1",
        json={"name": "renamed", "type": "KAFKA", "outputStreamIds": [1]},
    )

    assert resp.status_code == 201
    assert resp.json()["entity"]["name"] == "renamed"
    assert client.get(f"{_sources(topology['id'])}/1").json()["entity"]["name"] == "renamed"


def test_delete_source_removes_its_streams(client):
    topology = create_topology(client)
    client.post(_sources(topology["id"]), json=KAFKA_SOURCE)

    resp = client.delete(f"{_sources(topology['id'])}/1")
    assert resp.status_code == 200
    assert resp.json()["entity"]["id"] == 1

    assert client.get(f"{_sources(topology['id'])}/1").status_code == 404
    streams = client.get(f"{CATALOG}/topologies/{topology['id']}/streams").json()["entities"]
    assert streams == []

    again = client.delete(f"{_sources(topology['id'])}/1")
    assert again.status_code == 404
    assert again.json()["responseMessage"] == "Entity with id [1] not found."


def test_invalid_source_body_is_bad_request(client):
    topology = create_topology(client)

    resp = client.post(_sources(topology["id"]), json={"type": "KAFKA"})

    assert resp.status_code == 400
    assert resp.json()["responseCode"] == 1001
    assert "name" in resp.json()["responseMessage"]


def test_failed_create_rolls_back_inline_streams(provider_client):
    client = provider_client
    topology = create_topology(client)

    resp = client.post(
        _sources(topology["id"]),
        json={**KAFKA_SOURCE, "outputStreamIds": [7]},
    )

    assert resp.status_code == 500
    assert resp.json()["responseCode"] == 1102
    assert "Output stream id 7 does not exist" in resp.json()["responseMessage"]
    assert client.get(f"{CATALOG}/topologies/{topology['id']}/streams").json()["entities"] == []


def test_source_on_unknown_topology(client):
    resp = client.post(_sources(9), json=KAFKA_SOURCE)

    assert resp.status_code == 404
    assert resp.json()["responseMessage"] == "Entity with id [current version of topology id <9>] not found."


def test_sources_of_saved_version(client):
    topology = create_topology(client)
    client.post(_sources(topology["id"]), json=KAFKA_SOURCE)
    saved = client.post(f"{CATALOG}/topologies/{topology['id']}/versions/save").json()["entity"]
    client.put(f"{_sources(topology['id'])}/1", json={"name": "renamed", "type": "KAFKA"})

    versioned = f"{CATALOG}/topologies/{topology['id']}/versions/{saved['id']}/sources"
    assert client.get(f"{versioned}/1").json()["entity"]["name"] == "kafkaDataSource"
    assert [s["name"] for s in client.get(versioned).json()["entities"]] == ["kafkaDataSource"]
    assert client.get(f"{_sources(topology['id'])}/1").json()["entity"]["name"] == "renamed"

    missing = client.get(f"{CATALOG}/topologies/{topology['id']}/versions/9/sources")
    assert missing.status_code == 404
    assert missing.json()["responseMessage"] == "Entity not found for query params [topologyId=1, versionId=9]."


def test_list_unknown_topology_echoes_filters(client):
    resp = client.get(_sources(99), params={"name": "kafka", "type": "KAFKA"})

    assert resp.status_code == 404
    assert resp.json()["responseMessage"] == (
        "Entity not found for query params [topologyId=99, name=kafka, type=KAFKA]."
    )


def test_post_after_put_with_explicit_id_gets_a_fresh_id(provider_client):
    client = provider_client
    topology = create_topology(client)

    put = client.put(f"{_sources(topology['id'])}/3", json={"name": "pinned", "type": "KAFKA"})
    assert put.status_code == 201

    posted = client.post(_sources(topology["id"]), json={"name": "next", "type": "KAFKA"})

    assert posted.status_code == 201, posted.text
    assert posted.json()["entity"]["id"] == 4
    names = {s["id"]: s["name"] for s in client.get(_sources(topology["id"])).json()["entities"]}
    assert names == {3: "pinned", 4: "next"}
