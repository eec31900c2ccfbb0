"""Application bootstrap: storage, authorization and modules wired into FastAPI."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple, Type

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CollectorRegistry

from streamline.api import metrics as metrics_router
from streamline.api.metrics import RequestTimingMiddleware, create_request_histogram
from streamline.api.middleware import SecurityHeadersMiddleware, TransactionMiddleware
from streamline.api.routers import configuration
from streamline.common.reflection import load_class, new_instance
from streamline.core.config import Settings, get_settings
from streamline.core.errors import install_exception_handlers
from streamline.core.exceptions import ConfigurationError
from streamline.domain.services.stream_catalog_service import storable_entities
from streamline.infra.storage.base import NoopTransactionManager, StorageManager, TransactionManager
from streamline.modules import (
    CONFIG_AUTHORIZER,
    CONFIG_CATALOG_ROOT_URL,
    CONFIG_HTTP_PROXY_PASSWORD,
    CONFIG_HTTP_PROXY_URL,
    CONFIG_HTTP_PROXY_USERNAME,
    STREAMS_MODULE,
    ModuleRegistration,
    StorageManagerAware,
    TransactionManagerAware,
)
from streamline.security.authorizer import CONF_ADMIN_PRINCIPALS, Authorizer, NoopAuthorizer
from streamline.security.filters import BearerTokenRequestFilter

logger = logging.getLogger(__name__)

API_PREFIX = "/api"
DEFAULT_CATALOG_PORT = "8080"


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the web service from *settings* (defaults to the environment)."""
    settings = (settings or get_settings()).model_copy(deep=True)

    storage_manager = create_storage_manager(settings)
    if isinstance(storage_manager, TransactionManager):
        transaction_manager: TransactionManager = storage_manager
    else:
        transaction_manager = NoopTransactionManager()
    entities = storable_entities()
    storage_manager.register_storables(entities)
    logger.info("Registered streamline entities %s", [e.__name__ for e in entities])

    authorizer, request_filter = create_authorizer(settings)
    catalog_root_url = settings.catalog_root_url.replace(DEFAULT_CATALOG_PORT, str(settings.port), 1)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            storage_manager.close()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        lifespan=lifespan,
        openapi_url=f"{API_PREFIX}/v1/openapi.json",
        docs_url=f"{API_PREFIX}/v1/docs",
        redoc_url=f"{API_PREFIX}/v1/redoc",
    )
    app.state.settings = settings
    app.state.storage_manager = storage_manager
    app.state.transaction_manager = transaction_manager
    app.state.authorizer = authorizer

    resources: List[APIRouter] = [configuration.build_router(settings, catalog_root_url)]
    modules = register_modules(settings, storage_manager, transaction_manager, authorizer, catalog_root_url)
    app.state.modules = modules
    for module in modules.values():
        resources.extend(module.get_resources())

    logger.info("Registering %d resource router(s) under %s", len(resources), API_PREFIX)
    for resource in resources:
        app.include_router(resource, prefix=API_PREFIX)

    install_exception_handlers(app)

    # Middlewares: the last one added runs first.
    app.add_middleware(TransactionMiddleware, transaction_manager=transaction_manager)
    if settings.metrics_enabled:
        registry = CollectorRegistry()
        app.state.metrics_registry = registry
        app.add_middleware(RequestTimingMiddleware, histogram=create_request_histogram(registry))
        # mounted at the root, outside /api
        app.include_router(metrics_router.router, prefix="")
    if request_filter is not None:
        logger.info("Registering request filter: %s.%s", request_filter.__module__, request_filter.__name__)
        app.add_middleware(request_filter, settings=settings)
    add_servlet_filters(app, settings)
    app.add_middleware(SecurityHeadersMiddleware)
    if settings.enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins or ["*"],
            allow_credentials=True,
            allow_methods=["OPTIONS", "GET", "PUT", "POST", "DELETE", "HEAD"],
            allow_headers=["X-Requested-With", "Authorization", "Content-Type", "Accept", "Origin"],
        )
    return app


def create_storage_manager(settings: Settings) -> StorageManager:
    conf = settings.storage
    logger.info("Using storage provider %s", conf.provider_class)
    storage_manager = new_instance(conf.provider_class, StorageManager)
    storage_manager.init(dict(conf.properties))
    return storage_manager


def create_authorizer(settings: Settings) -> Tuple[Authorizer, Optional[Type[Any]]]:
    """Return the authorizer and the request-filter class to install (None for no filter)."""
    conf = settings.authorizer
    if conf is None:
        logger.info("Authorizer config not set, setting noop authorizer")
        return NoopAuthorizer(), None
    authorizer = new_instance(conf.class_name, Authorizer)
    authorizer.init({CONF_ADMIN_PRINCIPALS: list(conf.admin_principals)})
    if conf.container_request_filter:
        request_filter = load_class(conf.container_request_filter)
    else:
        request_filter = BearerTokenRequestFilter
    return authorizer, request_filter


def register_modules(
    settings: Settings,
    storage_manager: StorageManager,
    transaction_manager: TransactionManager,
    authorizer: Authorizer,
    catalog_root_url: str,
) -> Dict[str, ModuleRegistration]:
    modules: Dict[str, ModuleRegistration] = {}
    for module_conf in settings.modules:
        logger.info("Registering module [%s] with class [%s]", module_conf.name, module_conf.class_name)
        module = new_instance(module_conf.class_name, ModuleRegistration)
        if module_conf.config is None:
            module_conf.config = {}
        if module_conf.name == STREAMS_MODULE:
            module_conf.config[CONFIG_CATALOG_ROOT_URL] = catalog_root_url

        init_config: Dict[str, Any] = dict(module_conf.config)
        init_config[CONFIG_AUTHORIZER] = authorizer
        if init_config.get("proxyUrl") and not settings.http_proxy_url:
            logger.warning(
                "Please move proxyUrl, proxyUsername and proxyPassword configuration properties under "
                "module [%s] to http_proxy_url, http_proxy_username and http_proxy_password respectively "
                "at top level", module_conf.name,
            )
            settings.http_proxy_url = init_config.get("proxyUrl")
            settings.http_proxy_username = init_config.get("proxyUsername")
            settings.http_proxy_password = init_config.get("proxyPassword")
        # every module receives the top-level proxy settings
        init_config[CONFIG_HTTP_PROXY_URL] = settings.http_proxy_url
        init_config[CONFIG_HTTP_PROXY_USERNAME] = settings.http_proxy_username
        init_config[CONFIG_HTTP_PROXY_PASSWORD] = settings.http_proxy_password
        module.init(init_config)

        if isinstance(module, StorageManagerAware):
            logger.info("Module [%s] is StorageManagerAware and setting StorageManager.", module_conf.name)
            module.set_storage_manager(storage_manager)
        if isinstance(module, TransactionManagerAware):
            logger.info("Module [%s] is TransactionManagerAware and setting TransactionManager.", module_conf.name)
            module.set_transaction_manager(transaction_manager)
        modules[module_conf.name] = module
    return modules


def add_servlet_filters(app: FastAPI, settings: Settings) -> None:
    """Install the configured extra middlewares; a class that fails to load aborts startup."""
    if not settings.servlet_filters:
        logger.info("No servlet filters configured")
        return
    for filter_conf in settings.servlet_filters:
        try:
            middleware: Type[Any] = load_class(filter_conf.class_name)
        except ConfigurationError:
            logger.error("Error occurred while adding servlet filter %s", filter_conf)
            raise
        app.add_middleware(middleware, **filter_conf.params)
        logger.info("Added servlet filter '%s' with configuration %s", filter_conf.class_name, filter_conf.params)
