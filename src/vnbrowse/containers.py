"""Dependency Injection container for vnbrowse.

This module wires the browsing services together with dependency-injector.

The container manages:
- Settings (Singleton)
- HTTP transport, rate limiter and response cache (Singleton, shared by
  every service so the cache and the rate budget are process wide)
- Catalog gateway and detail service
- Session manager, personal list reconciler and the browsing state machine
"""

from __future__ import annotations

from aiolimiter import AsyncLimiter
from dependency_injector import containers, providers

from vnbrowse.config.loader import load_settings
from vnbrowse.services.browsing_state_machine import ListBrowsingStateMachine
from vnbrowse.services.cache import ResponseCache
from vnbrowse.services.pagination import PaginationController
from vnbrowse.services.personal_list import PersonalListReconciler
from vnbrowse.services.session import InMemoryCredentialStore, SessionManager
from vnbrowse.services.vndb import AiohttpTransport, CatalogDetailService, CatalogQueryGateway


class Container(containers.DeclarativeContainer):
    """Dependency Injection container for vnbrowse services.

    Example:
        >>> container = Container()
        >>> machine = container.browsing_state_machine()
        >>> await machine.navigate_home()
    """

    # Configuration
    config = providers.Singleton(load_settings)

    # Infrastructure
    transport = providers.Singleton(
        AiohttpTransport,
        base_url=providers.Callable(lambda config: config.api.base_url, config=config),
        timeout=providers.Callable(lambda config: config.api.timeout, config=config),
        user_agent=providers.Callable(lambda config: config.api.user_agent, config=config),
    )

    rate_limiter = providers.Singleton(
        AsyncLimiter,
        max_rate=providers.Callable(lambda config: config.api.rate_limit_requests, config=config),
        time_period=providers.Callable(lambda config: config.api.rate_limit_period, config=config),
    )

    response_cache = providers.Singleton(
        ResponseCache,
        ttl_seconds=providers.Callable(lambda config: config.cache.ttl, config=config),
    )

    # Catalog access
    gateway = providers.Singleton(
        CatalogQueryGateway,
        transport=transport,
        cache=response_cache,
        settings=providers.Callable(lambda config: config.api, config=config),
        limiter=rate_limiter,
        cache_enabled=providers.Callable(lambda config: config.cache.enabled, config=config),
    )

    detail_service = providers.Factory(CatalogDetailService, gateway=gateway)

    # Session
    credential_store = providers.Singleton(
        InMemoryCredentialStore,
        token=providers.Callable(lambda config: config.api.token, config=config),
    )

    session_manager = providers.Singleton(
        SessionManager,
        gateway=gateway,
        store=credential_store,
    )

    # Browsing
    pagination = providers.Factory(
        PaginationController,
        gateway=gateway,
        page_size=providers.Callable(lambda config: config.browsing.page_size, config=config),
    )

    reconciler = providers.Factory(
        PersonalListReconciler,
        gateway=gateway,
        max_pages=providers.Callable(
            lambda config: config.browsing.max_personal_list_pages,
            config=config,
        ),
        page_size=providers.Callable(
            lambda config: config.browsing.personal_list_page_size,
            config=config,
        ),
        hydration_batch_size=providers.Callable(
            lambda config: config.browsing.hydration_batch_size,
            config=config,
        ),
    )

    browsing_state_machine = providers.Factory(
        ListBrowsingStateMachine,
        pagination=pagination,
        reconciler=reconciler,
        sessions=session_manager,
        settings=providers.Callable(lambda config: config.browsing, config=config),
    )
