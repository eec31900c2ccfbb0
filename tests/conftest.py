"""Shared fixtures: settings isolated from the environment, an app client, a bare catalog service."""
from __future__ import annotations

import itertools
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from streamline.bootstrap import create_app
from streamline.core.config import Settings, StorageProviderConfiguration
from streamline.domain.services.stream_catalog_service import StreamCatalogService, storable_entities
from streamline.infra.storage.memory import InMemoryStorageManager

CATALOG = "/api/v1/catalog"


def make_settings(**overrides: Any) -> Settings:
    return Settings(_env_file=None, **overrides)


def sql_storage(tmp_path) -> StorageProviderConfiguration:
    return StorageProviderConfiguration(
        provider_class="streamline.infra.storage.sql.SqlStorageManager",
        properties={"db_url": f"sqlite:///{tmp_path / 'catalog.db'}"},
    )


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def client(settings: Settings):
    with TestClient(create_app(settings)) as c:
        yield c


@pytest.fixture(params=["memory", "sql"])
def provider_client(request, tmp_path):
    """A client over each storage provider; the SQL one is backed by a sqlite file."""
    overrides = {} if request.param == "memory" else {"storage": sql_storage(tmp_path)}
    with TestClient(create_app(make_settings(**overrides))) as c:
        yield c


@pytest.fixture
def storage() -> InMemoryStorageManager:
    sm = InMemoryStorageManager()
    sm.register_storables(storable_entities())
    return sm


@pytest.fixture
def service(storage: InMemoryStorageManager) -> StreamCatalogService:
    ticks = itertools.count(1_000)
    return StreamCatalogService(storage, clock=lambda: next(ticks))


def create_topology(client: TestClient, name: str = "wordcount") -> Dict[str, Any]:
    resp = client.post(f"{CATALOG}/topologies", json={"name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()["entity"]


def stream_body(stream_id: str = "default", *field_types: str) -> Dict[str, Any]:
    types = field_types or ("STRING",)
    return {
        "streamId": stream_id,
        "fields": [{"name": f"f{i}", "type": t} for i, t in enumerate(types, start=1)],
    }
