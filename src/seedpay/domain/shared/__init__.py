"""Shared domain utilities.

This package is domain-accessible and should not depend on application code.
"""

from .chain_source_protocol import ChainDataSource
from .locks import KeyedLocks

__all__ = ["ChainDataSource", "KeyedLocks"]
