"""The streams module: topology, source and stream catalog resources."""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter

from streamline.api.routers import sources, streams, topologies
from streamline.core.exceptions import ConfigurationError
from streamline.domain.services.stream_catalog_service import StreamCatalogService
from streamline.infra.storage.base import StorageManager, TransactionManager
from streamline.modules import (
    CONFIG_AUTHORIZER,
    CONFIG_CATALOG_ROOT_URL,
    ModuleRegistration,
    StorageManagerAware,
    TransactionManagerAware,
)
from streamline.security.authorizer import Authorizer, NoopAuthorizer

logger = logging.getLogger(__name__)


class StreamsModule(ModuleRegistration, StorageManagerAware, TransactionManagerAware):
    def __init__(self) -> None:
        self.config: Dict[str, Any] = {}
        self.authorizer: Authorizer = NoopAuthorizer()
        self.catalog_service: StreamCatalogService | None = None
        self.transaction_manager: TransactionManager | None = None

    def init(self, config: Dict[str, Any]) -> None:
        super().init(config)
        self.authorizer = config.get(CONFIG_AUTHORIZER) or NoopAuthorizer()
        logger.info("Streams module catalog root url: %s", config.get(CONFIG_CATALOG_ROOT_URL))

    def set_storage_manager(self, storage_manager: StorageManager) -> None:
        self.catalog_service = StreamCatalogService(storage_manager)

    def set_transaction_manager(self, transaction_manager: TransactionManager) -> None:
        self.transaction_manager = transaction_manager

    def get_resources(self) -> List[APIRouter]:
        if self.catalog_service is None:
            raise ConfigurationError("Streams module needs a storage manager before registering resources")
        return [
            topologies.build_router(self.catalog_service, self.authorizer),
            sources.build_router(self.catalog_service, self.authorizer),
            streams.build_router(self.catalog_service, self.authorizer),
        ]
