"""Pytest fixtures for use case tests."""

from __future__ import annotations

import pytest

from seedpay.application.use_cases.allocation import AddressAllocator
from seedpay.application.use_cases.observer import ChainObserver
from seedpay.application.use_cases.payment import PaymentService
from seedpay.crypto.seed_vault import SeedVault
from seedpay.infrastructure.payment_repository_impl import PaymentRepositoryImpl
from tests.fixtures import FakeChainSource, FakeClock, InMemoryKeyValueStore


@pytest.fixture
def payment_repository(
    store: InMemoryKeyValueStore, clock: FakeClock
) -> PaymentRepositoryImpl:
    return PaymentRepositoryImpl(store, clock=clock)


@pytest.fixture
def allocator(
    vault: SeedVault, payment_repository: PaymentRepositoryImpl
) -> AddressAllocator:
    return AddressAllocator(vault, payment_repository)


@pytest.fixture
def payment_service(
    payment_repository: PaymentRepositoryImpl,
    allocator: AddressAllocator,
    clock: FakeClock,
) -> PaymentService:
    return PaymentService(
        payment_repository,
        allocator,
        default_confirmations=3,
        default_ttl_seconds=3600,
        clock=clock,
    )


@pytest.fixture
def chain_source() -> FakeChainSource:
    return FakeChainSource()


@pytest.fixture
def observer(
    payment_service: PaymentService,
    payment_repository: PaymentRepositoryImpl,
    chain_source: FakeChainSource,
    clock: FakeClock,
) -> ChainObserver:
    sleeps: list[float] = []

    async def record_sleep(delay: float) -> None:
        sleeps.append(delay)

    obs = ChainObserver(
        payment_service,
        payment_repository,
        chain_source,
        query_timeout_seconds=0.05,
        query_retries=2,
        backoff_seconds=0.01,
        clock=clock,
        sleep=record_sleep,
    )
    obs.recorded_sleeps = sleeps  # type: ignore[attr-defined]
    return obs
