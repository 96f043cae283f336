"""FastAPI dependencies for the payment engine API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..application.use_cases.allocation import AddressAllocator
from ..application.use_cases.observer import ChainObserver
from ..application.use_cases.payment import PaymentService
from ..crypto.seed_vault import SeedVault
from ..domain.payment_repository import PaymentRepository
from ..domain.shared import ChainDataSource
from ..envs.engine_env import Settings
from ..infrastructure.chain.indexer_client import EsploraIndexerClient
from ..infrastructure.database import DatabaseClient
from ..infrastructure.payment_repository_impl import PaymentRepositoryImpl
from ..infrastructure.scripts import LEDGER_SCRIPTS
from ..infrastructure.storage import KeyValueStore, RedisKeyValueStore


@dataclass
class EngineContainer:
    """Long-lived collaborators shared by every request and the poller."""

    settings: Settings
    store: KeyValueStore
    payment_repository: PaymentRepository
    vault: SeedVault
    allocator: AddressAllocator
    payment_service: PaymentService
    observer: ChainObserver
    chain_source: Optional[ChainDataSource] = None
    db_client: Optional[DatabaseClient] = None

    async def aclose(self) -> None:
        if self.chain_source is not None:
            await self.chain_source.aclose()
        if self.db_client is not None:
            await self.db_client.close()


async def build_container(
    settings: Settings,
    store: Optional[KeyValueStore] = None,
    chain_source: Optional[ChainDataSource] = None,
) -> EngineContainer:
    """Wire the engine. ``store``/``chain_source`` override the Redis and indexer defaults."""
    db_client: Optional[DatabaseClient] = None
    if store is None:
        db_client = DatabaseClient(settings)
        store = RedisKeyValueStore(db_client)
    for name, script in LEDGER_SCRIPTS.items():
        await store.register_script(name, script)

    if chain_source is None and settings.indexer_base_url:
        chain_source = EsploraIndexerClient(
            settings.indexer_base_url, timeout=settings.chain_query_timeout_seconds
        )

    repository = PaymentRepositoryImpl(store)
    vault = SeedVault.from_mnemonic(settings.mnemonic, settings.passphrase)
    allocator = AddressAllocator(
        vault,
        repository,
        default_network=settings.network,
        default_kind=settings.address_kind,
    )
    payment_service = PaymentService(
        repository,
        allocator,
        default_account=settings.default_account,
        default_confirmations=settings.confirmations_required,
        default_ttl_seconds=settings.payment_ttl_seconds,
    )
    observer = ChainObserver(
        payment_service,
        repository,
        chain_source,
        poll_interval_seconds=settings.poll_interval_seconds,
        query_timeout_seconds=settings.chain_query_timeout_seconds,
        query_retries=settings.chain_query_retries,
        backoff_seconds=settings.chain_query_backoff_seconds,
    )
    return EngineContainer(
        settings=settings,
        store=store,
        payment_repository=repository,
        vault=vault,
        allocator=allocator,
        payment_service=payment_service,
        observer=observer,
        chain_source=chain_source,
        db_client=db_client,
    )


def get_container(request: Request) -> EngineContainer:
    return request.app.state.engine


def get_payment_service(request: Request) -> PaymentService:
    """Get payment service."""
    return get_container(request).payment_service


def get_chain_observer(request: Request) -> ChainObserver:
    """Get chain observer."""
    return get_container(request).observer


def get_seed_vault(request: Request) -> SeedVault:
    return get_container(request).vault


def get_engine_settings(request: Request) -> Settings:
    return get_container(request).settings


def get_webhook_secret(request: Request) -> Optional[str]:
    return get_container(request).settings.webhook_secret
