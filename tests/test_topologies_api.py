from tests.conftest import CATALOG, create_topology

TOPOLOGIES = f"{CATALOG}/topologies"


def test_create_and_get_topology(client):
    created = create_topology(client, "wordcount")

    assert created["id"] == 1
    assert created["versionId"] == 1
    assert "versionTimestamp" in created

    resp = client.get(f"{TOPOLOGIES}/1")
    assert resp.status_code == 200
    assert resp.json()["entity"]["name"] == "wordcount"


def test_list_topologies(client):
    create_topology(client, "a")
    create_topology(client, "b")

    names = [t["name"] for t in client.get(TOPOLOGIES).json()["entities"]]
    assert names == ["a", "b"]
    assert [t["name"] for t in client.get(TOPOLOGIES, params={"name": "b"}).json()["entities"]] == ["b"]


def test_update_topology(client):
    create_topology(client)

    resp = client.put(f"{TOPOLOGIES}/1", json={"name": "renamed", "config": {"workers": 3}})

    assert resp.status_code == 200
    assert resp.json()["entity"]["config"] == {"workers": 3}
    assert client.get(f"{TOPOLOGIES}/1").json()["entity"]["name"] == "renamed"


def test_delete_topology(client):
    create_topology(client)

    assert client.delete(f"{TOPOLOGIES}/1").status_code == 200
    assert client.get(f"{TOPOLOGIES}/1").status_code == 404
    assert client.get(f"{TOPOLOGIES}/1/versions").json()["entities"] == []
    missing = client.delete(f"{TOPOLOGIES}/1")
    assert missing.status_code == 404
    assert missing.json()["responseMessage"] == "Entity with id [1] not found."


def test_topology_without_name_is_bad_request(client):
    resp = client.post(TOPOLOGIES, json={"description": "nameless"})

    assert resp.status_code == 400
    assert resp.json()["responseCode"] == 1001


def test_save_and_list_versions(client):
    create_topology(client)

    saved = client.post(f"{TOPOLOGIES}/1/versions/save", json={"description": "first"})
    assert saved.status_code == 201
    assert saved.json()["entity"]["name"] == "V1"
    assert saved.json()["entity"]["description"] == "first"

    versions = client.get(f"{TOPOLOGIES}/1/versions").json()["entities"]
    assert [(v["id"], v["name"]) for v in versions] == [(1, "V1"), (2, "CURRENT")]

    info = client.get(f"{TOPOLOGIES}/versions/1")
    assert info.status_code == 200
    assert info.json()["entity"]["topologyId"] == 1
    assert client.get(f"{TOPOLOGIES}/versions/99").status_code == 404

    pinned = client.get(f"{TOPOLOGIES}/1/versions/1")
    assert pinned.json()["entity"]["versionId"] == 1
    assert client.get(f"{TOPOLOGIES}/1").json()["entity"]["versionId"] == 2


def test_save_version_of_unknown_topology(client):
    resp = client.post(f"{TOPOLOGIES}/7/versions/save")

    assert resp.status_code == 404
    assert resp.json()["responseCode"] == 1101


def test_unknown_route_uses_envelope(client):
    resp = client.get("/api/v1/catalog/nothing-here")

    assert resp.status_code == 404
    assert resp.json() == {
        "responseCode": 1101,
        "responseMessage": "Entity with id [/api/v1/catalog/nothing-here] not found.",
    }


def test_non_numeric_id_is_bad_request(client):
    resp = client.get(f"{TOPOLOGIES}/abc")

    assert resp.status_code == 400
    assert resp.json()["responseCode"] == 1001


def test_put_with_explicit_id_does_not_collide_with_post(provider_client):
    client = provider_client
    create_topology(client, "a")
    put = client.put(f"{TOPOLOGIES}/2", json={"name": "put-created"})
    assert put.status_code == 200

    posted = create_topology(client, "posted")

    assert posted["id"] == 3
    listed = [(t["id"], t["name"]) for t in client.get(TOPOLOGIES).json()["entities"]]
    assert listed == [(1, "a"), (2, "put-created"), (3, "posted")]
    for topology_id in (2, 3):
        versions = client.get(f"{TOPOLOGIES}/{topology_id}/versions").json()["entities"]
        assert [v["name"] for v in versions] == ["CURRENT"]
