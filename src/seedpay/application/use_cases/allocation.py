"""Address allocation: one fresh, never reused receiving address per request."""

from __future__ import annotations

import logging
from typing import Optional

from ...crypto.seed_vault import SeedVault
from ...domain.entities import HARDENED_OFFSET, AddressKind, Network, PaymentAddress
from ...domain.errors import AllocationExhausted
from ...domain.payment_repository import PaymentRepository
from ...domain.shared import KeyedLocks

logger = logging.getLogger(__name__)


class AddressAllocator:
    """Draws address indexes from a persisted counter and reserves their paths.

    The counter lives in the ledger store, so indexes keep increasing across
    restarts. Each path is additionally reserved once; an index whose path is
    already reserved (an older process, a restored backup) is skipped.
    """

    def __init__(
        self,
        vault: SeedVault,
        payment_repository: PaymentRepository,
        *,
        default_network: Network = Network.MAINNET,
        default_kind: AddressKind = AddressKind.P2WPKH,
        max_index: int = HARDENED_OFFSET,
        max_collisions: int = 100,
    ):
        if not 0 < max_index <= HARDENED_OFFSET:
            raise ValueError("max_index must be within the non-hardened range")
        self.vault = vault
        self.payment_repository = payment_repository
        self.default_network = default_network
        self.default_kind = default_kind
        self.max_index = max_index
        self.max_collisions = max_collisions
        self._locks = KeyedLocks()

    @staticmethod
    def counter_key(network: Network, kind: AddressKind, account_index: int) -> str:
        return f"allocator:counter:{network.value}:{kind.value}:{account_index}"

    async def allocate(
        self,
        account_index: int,
        network: Optional[Network] = None,
        kind: Optional[AddressKind] = None,
    ) -> PaymentAddress:
        network = network or self.default_network
        kind = kind or self.default_kind
        key = self.counter_key(network, kind, account_index)

        async with self._locks.get(key):
            collisions = 0
            while True:
                index = await self.payment_repository.next_address_index(key)
                if index >= self.max_index:
                    raise AllocationExhausted(
                        f"Account {account_index} has no unused {kind.value} "
                        f"addresses left on {network.value}"
                    )

                path, address = self.vault.derive_address(
                    account_index, index, network, kind
                )
                if await self.payment_repository.reserve_path(path):
                    logger.debug("Allocated %s at %s", address, path)
                    return PaymentAddress(
                        path=path,
                        address=address,
                        network=network,
                        kind=kind,
                        account_index=account_index,
                        address_index=index,
                    )

                collisions += 1
                logger.warning("Derivation path %s already reserved, skipping", path)
                if collisions >= self.max_collisions:
                    raise AllocationExhausted(
                        f"{collisions} consecutive reserved paths under {key}"
                    )
