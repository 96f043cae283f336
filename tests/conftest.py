"""Shared pytest fixtures for payment engine tests."""

from __future__ import annotations

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from seedpay.crypto.seed_vault import SeedVault
from seedpay.infrastructure.database import DatabaseClient
from seedpay.infrastructure.scripts import LEDGER_SCRIPTS
from seedpay.infrastructure.storage import RedisKeyValueStore
from tests.fixtures import FakeClock, InMemoryKeyValueStore

# BIP39/BIP84 reference mnemonic; never fund anything derived from it.
TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)


@pytest.fixture(scope="session")
def test_mnemonic() -> str:
    return TEST_MNEMONIC


@pytest.fixture(scope="session")
def vault() -> SeedVault:
    """Seed vault restored from the reference mnemonic."""
    return SeedVault.from_mnemonic(TEST_MNEMONIC)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def store() -> AsyncGenerator[InMemoryKeyValueStore, None]:
    """In-memory key-value store with the ledger scripts registered."""
    kv = InMemoryKeyValueStore()
    for name, script in LEDGER_SCRIPTS.items():
        await kv.register_script(name, script)
    yield kv
    kv.clear()


class TestDatabaseSettings:
    """Test settings for Redis connection."""

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url


@pytest_asyncio.fixture
async def redis_db_client() -> AsyncGenerator[DatabaseClient, None]:
    """Create a Redis database client for testing.

    Uses database 15 by default, or TEST_REDIS_URL if set. Tests depending on it
    are skipped when Redis is not reachable.
    """
    test_redis_url = os.getenv("TEST_REDIS_URL", "redis://localhost:6379/15")
    client = DatabaseClient(TestDatabaseSettings(database_url=test_redis_url))
    client.initialize_database()

    try:
        await client.ping()
    except Exception as e:
        await client.close()
        pytest.skip(f"Redis not available at {test_redis_url}: {e}")

    async with client.get_connection() as conn:
        await conn.flushdb()

    yield client

    async with client.get_connection() as conn:
        await conn.flushdb()
    await client.close()


@pytest_asyncio.fixture
async def redis_store(redis_db_client: DatabaseClient) -> RedisKeyValueStore:
    """Create a Redis-backed key-value store with the ledger scripts loaded."""
    kv = RedisKeyValueStore(redis_db_client)
    for name, script in LEDGER_SCRIPTS.items():
        await kv.register_script(name, script)
    return kv
