"""Payment ledger domain repository interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, List, Optional
from uuid import UUID

from .entities import DerivationPath, Payment

PaymentMutator = Callable[[Payment], Payment]


class PaymentRepository(ABC):
    """Abstract repository for Payment entities and address reservations."""

    @abstractmethod
    async def record(self, payment: Payment) -> Payment:
        """Atomically insert a new payment.

        Raises:
            DuplicatePaymentError: If the id or the address is already owned.
        """
        pass

    @abstractmethod
    async def get(self, payment_id: UUID) -> Payment:
        """Get a payment by id.

        Raises:
            PaymentNotFoundError: If no payment has this id.
        """
        pass

    @abstractmethod
    async def find_by_address(self, address: str) -> Optional[Payment]:
        """Get the payment owning an address, or None for unknown addresses."""
        pass

    @abstractmethod
    async def update(self, payment_id: UUID, mutator: PaymentMutator) -> Payment:
        """
        Apply ``mutator`` to the stored payment and persist the result atomically.

        This is the only path by which a recorded payment changes. The mutator
        receives a private copy; returning it unchanged is a no-op. Updates for the
        same id never interleave.
        """
        pass

    @abstractmethod
    async def list_awaiting(self) -> List[Payment]:
        """Payments the chain observer must keep watching."""
        pass

    @abstractmethod
    async def list_all(self, skip: int = 0, limit: int = 100) -> List[Payment]:
        """All payments, newest first, with pagination."""
        pass

    @abstractmethod
    async def next_address_index(self, counter_key: str) -> int:
        """Atomically draw the next address index for an allocation counter."""
        pass

    @abstractmethod
    async def reserve_path(self, path: DerivationPath) -> bool:
        """Reserve a derivation path. Returns False if it was already reserved."""
        pass
