"""Test fixtures for in-memory implementations."""

from .clock import FakeClock
from .fake_chain_source import FakeChainSource
from .in_memory_storage import InMemoryKeyValueStore

__all__ = [
    "FakeChainSource",
    "FakeClock",
    "InMemoryKeyValueStore",
]
