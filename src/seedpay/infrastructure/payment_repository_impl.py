"""Payment ledger repository implementation over a storage abstraction."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple
from uuid import UUID

from ..domain.entities import DerivationPath, Payment, utc_now
from ..domain.errors import (
    ConcurrentUpdateError,
    DuplicatePaymentError,
    PaymentNotFoundError,
)
from ..domain.payment_repository import PaymentMutator, PaymentRepository
from ..domain.shared import KeyedLocks
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

ALL_PAYMENTS_KEY = "payments:all"
WATCHING_KEY = "payments:watching"


def _payment_key(payment_id: UUID | str) -> str:
    return f"payment:{payment_id}"


def _address_key(address: str) -> str:
    return f"payment:address:{address}"


def _path_key(path: DerivationPath) -> str:
    return f"allocator:path:{path}"


def _parse_script_result(result: Any) -> Tuple[int, Optional[str]]:
    # result is a list-like: [code, json_or_empty]
    code = int(result[0]) if result and result[0] not in (None, "") else 0
    payload = result[1] if len(result) > 1 and result[1] not in (None, "") else None
    return code, payload


class PaymentRepositoryImpl(PaymentRepository):
    """Payment repository using a KeyValueStore.

    Writes go through the ``record_payment`` and ``compare_and_set_payment``
    scripts, which must be registered on the store beforehand.
    """

    def __init__(
        self,
        store: KeyValueStore,
        max_update_attempts: int = 5,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.max_update_attempts = max_update_attempts
        self.clock = clock
        self._locks = KeyedLocks()

    async def record(self, payment: Payment) -> Payment:
        result = await self.store.run_script(
            "record_payment",
            keys=[
                _payment_key(payment.id),
                _address_key(payment.address.address),
                ALL_PAYMENTS_KEY,
                WATCHING_KEY,
            ],
            args=[
                payment.model_dump_json(),
                str(payment.id),
                str(payment.created_at.timestamp()),
                "1" if payment.is_watched else "0",
            ],
        )
        code, payload = _parse_script_result(result)
        if code == 1:
            return payment
        if payload == "address":
            raise DuplicatePaymentError(
                f"Address {payment.address.address} already belongs to a payment"
            )
        raise DuplicatePaymentError(f"Payment {payment.id} already exists")

    async def get(self, payment_id: UUID) -> Payment:
        data = await self.store.get(_payment_key(payment_id))
        if not data:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")
        return Payment.model_validate_json(data)

    async def find_by_address(self, address: str) -> Optional[Payment]:
        payment_id = await self.store.get(_address_key(address))
        if not payment_id:
            return None
        data = await self.store.get(_payment_key(payment_id))
        if not data:
            return None
        return Payment.model_validate_json(data)

    async def update(self, payment_id: UUID, mutator: PaymentMutator) -> Payment:
        async with self._locks.get(payment_id):
            for _ in range(self.max_update_attempts):
                current = await self.get(payment_id)
                updated = mutator(current.model_copy(deep=True))
                if updated == current:
                    return current

                updated = updated.model_copy(
                    update={"version": current.version + 1, "updated_at": self.clock()}
                )
                result = await self.store.run_script(
                    "compare_and_set_payment",
                    keys=[_payment_key(payment_id), WATCHING_KEY],
                    args=[
                        updated.model_dump_json(),
                        str(current.version),
                        str(payment_id),
                        str(updated.created_at.timestamp()),
                        "1" if updated.is_watched else "0",
                    ],
                )
                code, _ = _parse_script_result(result)
                if code == 1:
                    return updated
                if code == 2:
                    raise PaymentNotFoundError(f"Payment {payment_id} not found")
                # Another process wrote in between; re-read and re-apply.
                logger.debug("Version conflict on payment %s, retrying", payment_id)

        raise ConcurrentUpdateError(
            f"Payment {payment_id} changed {self.max_update_attempts} times during update"
        )

    async def _load_many(self, ids: List[str]) -> List[Payment]:
        payments: List[Payment] = []
        for payment_id in ids:
            data = await self.store.get(_payment_key(payment_id))
            if data:
                payments.append(Payment.model_validate_json(data))
        return payments

    async def list_awaiting(self) -> List[Payment]:
        ids = await self.store.zrevrange(WATCHING_KEY, 0, -1)
        return [p for p in await self._load_many(ids) if p.is_watched]

    async def list_all(self, skip: int = 0, limit: int = 100) -> List[Payment]:
        ids = await self.store.zrevrange(ALL_PAYMENTS_KEY, skip, skip + limit - 1)
        return await self._load_many(ids)

    async def next_address_index(self, counter_key: str) -> int:
        return await self.store.incr(counter_key) - 1

    async def reserve_path(self, path: DerivationPath) -> bool:
        return await self.store.set_if_absent(_path_key(path), self.clock().isoformat())

