"""Protocol interface for chain data sources.

The observer depends on this contract only, so the indexer client can be swapped
for a node RPC adapter or an in-memory fake in tests.
"""

from __future__ import annotations

from typing import Protocol

from ..events import AddressActivity


class ChainDataSource(Protocol):
    """Answers balance/transaction queries for an address.

    Implementations raise ``ChainQueryError`` on transport or protocol failures;
    callers decide whether to retry.
    """

    async def get_address_activity(self, address: str) -> AddressActivity:
        """Return current funding transactions for ``address``.

        Args:
            address: Receiving address to query

        Returns:
            Snapshot with per-transaction confirmation counts; transactions still
            in the mempool have zero confirmations.
        """
        ...

    async def aclose(self) -> None:
        """Release any underlying connections."""
        ...
