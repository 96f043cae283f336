"""Payment use cases: request, lookup, event application and expiry."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from uuid import UUID

from ...domain.entities import Payment, PaymentState, utc_now
from ...domain.events import ChainEvent
from ...domain.payment_repository import PaymentRepository
from ..dtos import CreatePaymentDTO, PaymentResponseDTO
from . import confirmation
from .allocation import AddressAllocator

logger = logging.getLogger(__name__)


class PaymentService:
    """Service for payment requests and their lifecycle in the ledger."""

    def __init__(
        self,
        payment_repository: PaymentRepository,
        allocator: AddressAllocator,
        *,
        default_account: int = 0,
        default_confirmations: int = 3,
        default_ttl_seconds: int = 3600,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.payment_repository = payment_repository
        self.allocator = allocator
        self.default_account = default_account
        self.default_confirmations = default_confirmations
        self.default_ttl_seconds = default_ttl_seconds
        self.clock = clock

    async def request_payment(self, dto: CreatePaymentDTO) -> PaymentResponseDTO:
        """Allocate a fresh address and record an awaiting payment for it."""
        account = (
            dto.account_index if dto.account_index is not None else self.default_account
        )
        address = await self.allocator.allocate(account, dto.network, dto.address_kind)

        now = self.clock()
        ttl = dto.ttl_seconds or self.default_ttl_seconds
        payment = Payment(
            address=address,
            expected_amount=dto.expected_amount,
            confirmations_required=(
                dto.confirmations_required or self.default_confirmations
            ),
            expires_at=now + timedelta(seconds=ttl),
            created_at=now,
        )
        payment = await self.payment_repository.record(payment)
        logger.info(
            "Payment %s awaiting %d on %s (%s)",
            payment.id,
            payment.expected_amount,
            address.address,
            address.path,
        )
        return PaymentResponseDTO.from_payment(payment)

    async def get_payment(self, payment_id: UUID) -> PaymentResponseDTO:
        payment = await self.payment_repository.get(payment_id)
        return PaymentResponseDTO.from_payment(payment)

    async def get_payment_by_address(self, address: str) -> Optional[PaymentResponseDTO]:
        payment = await self.payment_repository.find_by_address(address)
        if payment is None:
            return None
        return PaymentResponseDTO.from_payment(payment)

    async def list_payments(
        self, skip: int = 0, limit: int = 100
    ) -> List[PaymentResponseDTO]:
        payments = await self.payment_repository.list_all(skip=skip, limit=limit)
        return [PaymentResponseDTO.from_payment(p) for p in payments]

    async def apply_event(self, event: ChainEvent) -> Optional[Payment]:
        """Route a chain event to the payment owning its address.

        Returns None when the address belongs to no payment.
        """
        payment = await self.payment_repository.find_by_address(event.address)
        if payment is None:
            logger.debug("Ignoring event for unknown address %s", event.address)
            return None

        previous_state = payment.state
        now = self.clock()
        updated = await self.payment_repository.update(
            payment.id, lambda p: confirmation.apply_event(p, event, now)
        )
        self._log_transition(updated, previous_state)
        return updated

    async def expire(self, payment_id: UUID) -> Payment:
        now = self.clock()
        previous = await self.payment_repository.get(payment_id)
        updated = await self.payment_repository.update(
            payment_id, lambda p: confirmation.expire(p, now)
        )
        if updated.watch_closed and not previous.watch_closed:
            logger.warning(
                "Payment %s still needs review; stopped polling after expiry",
                payment_id,
            )
        self._log_transition(updated, previous.state)
        return updated

    def _log_transition(self, payment: Payment, previous_state: PaymentState) -> None:
        if payment.state is previous_state:
            return
        if payment.state is PaymentState.NEEDS_REVIEW:
            logger.warning(
                "Payment %s lost its confirmations and needs review", payment.id
            )
            return
        logger.info(
            "Payment %s %s -> %s (observed %d of %d, %d confirmations)",
            payment.id,
            previous_state.value,
            payment.state.value,
            payment.observed_amount,
            payment.expected_amount,
            payment.confirmations_seen,
        )
