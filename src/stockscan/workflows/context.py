"""Dependency container wiring storage, caches, gateway and loader."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from functools import partial
from typing import Optional

from stockscan.config import STORAGE_BACKENDS, Config
from stockscan.domain.services.scoring import QuickScanCalculator
from stockscan.infrastructure.cache import CacheManager
from stockscan.infrastructure.credentials import CredentialStore
from stockscan.infrastructure.data_providers.alpha_vantage_client import AlphaVantageClient
from stockscan.infrastructure.db.base import KeyValueStore
from stockscan.infrastructure.db.memory import InMemoryKeyValueStore
from stockscan.infrastructure.db.sqlite import SQLiteKeyValueStore
from stockscan.workflows.gateway import ClientFactory, FinancialDataGateway
from stockscan.workflows.orchestrator import StateListener, StockDataLoader


@dataclass
class AppServices:
    """Holds the long-lived objects shared by CLI commands."""

    config: Config
    store: KeyValueStore
    credentials: CredentialStore
    cache: CacheManager
    gateway: FinancialDataGateway
    loader: StockDataLoader

    def close(self) -> None:
        """Release any dependencies that need explicit cleanup."""
        self.loader.close()
        close_store = getattr(self.store, "close", None)
        if callable(close_store):
            close_store()


def build_services(
    config: Config,
    *,
    store: Optional[KeyValueStore] = None,
    client_factory: Optional[ClientFactory] = None,
    listener: Optional[StateListener] = None,
) -> AppServices:
    """Assemble services from ``config``; ``store``/``client_factory`` override the defaults."""
    kv_store = store if store is not None else _default_store(config)
    credentials = CredentialStore(kv_store, fallback=config.alpha_vantage_api_key)
    cache = CacheManager(kv_store, ttl=timedelta(hours=config.cache_ttl_hours))
    factory = client_factory or partial(
        AlphaVantageClient,
        base_url=config.alpha_vantage_base_url,
        timeout=config.http_timeout,
        proxy_url=config.proxy_url,
    )
    gateway = FinancialDataGateway(
        credentials,
        factory,
        calculator=QuickScanCalculator(),
        max_reports=config.max_annual_reports,
    )
    loader = StockDataLoader(gateway, cache, listener=listener)
    return AppServices(
        config=config,
        store=kv_store,
        credentials=credentials,
        cache=cache,
        gateway=gateway,
        loader=loader,
    )


def _default_store(config: Config) -> KeyValueStore:
    """Pick the storage backend named by ``config.storage_backend``."""
    if config.storage_backend not in STORAGE_BACKENDS:
        raise ValueError(
            f"Unknown storage backend {config.storage_backend!r}; expected one of {', '.join(STORAGE_BACKENDS)}."
        )
    if config.storage_backend == "memory":
        return InMemoryKeyValueStore()
    return SQLiteKeyValueStore(config.database_uri, echo=config.sqlite_echo)
