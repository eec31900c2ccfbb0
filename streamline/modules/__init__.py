"""Module plugins: configured by class name, each contributes REST resources."""
from __future__ import annotations

import abc
from typing import Any, Dict, List

from fastapi import APIRouter

from streamline.infra.storage.base import StorageManager, TransactionManager

STREAMS_MODULE = "streams"

CONFIG_CATALOG_ROOT_URL = "catalog.root.url"
CONFIG_AUTHORIZER = "authorizer"
CONFIG_HTTP_PROXY_URL = "httpProxyUrl"
CONFIG_HTTP_PROXY_USERNAME = "httpProxyUsername"
CONFIG_HTTP_PROXY_PASSWORD = "httpProxyPassword"


class ModuleRegistration(abc.ABC):
    """A pluggable module; instantiated without arguments, then ``init``-ed."""

    def init(self, config: Dict[str, Any]) -> None:
        self.config = config

    @abc.abstractmethod
    def get_resources(self) -> List[APIRouter]: ...


class StorageManagerAware(abc.ABC):
    @abc.abstractmethod
    def set_storage_manager(self, storage_manager: StorageManager) -> None: ...


class TransactionManagerAware(abc.ABC):
    @abc.abstractmethod
    def set_transaction_manager(self, transaction_manager: TransactionManager) -> None: ...
