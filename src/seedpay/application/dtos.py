"""Data Transfer Objects for the payment engine application layer."""

from __future__ import annotations

import re
from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domain.entities import AddressKind, Network, Payment, PaymentState
from ..domain.events import ChainEvent, ChainEventKind, EventSource
from .shared.serializers import CommonSerializersMixin
from .use_cases.reconciliation import excess_amount

_TX_HASH_RE = re.compile(r"^[0-9a-fA-F]{64}$")


class CreatePaymentDTO(BaseModel):
    """DTO for requesting a new payment address."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"expected_amount": 150000, "confirmations_required": 3}
        }
    )

    expected_amount: int = Field(..., gt=0, description="Amount in satoshis")
    account_index: Optional[int] = Field(None, ge=0, lt=2**31)
    network: Optional[Network] = None
    address_kind: Optional[AddressKind] = None
    confirmations_required: Optional[int] = Field(None, ge=1, le=1000)
    ttl_seconds: Optional[int] = Field(None, gt=0)


class TransactionResponseDTO(BaseModel):
    tx_hash: str
    amount: int
    confirmations: int
    dropped: bool


class PaymentResponseDTO(CommonSerializersMixin, BaseModel):
    """Export record handed to the order system."""

    id: UUID
    address: str
    derivation_path: str
    network: Network
    address_kind: AddressKind
    expected_amount: int
    observed_amount: int
    excess_amount: int
    state: PaymentState
    needs_review: bool
    confirmations_required: int
    confirmations_seen: int
    expires_at: datetime
    transactions: List[TransactionResponseDTO]
    created_at: datetime
    updated_at: Optional[datetime]

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentResponseDTO":
        return cls(
            id=payment.id,
            address=payment.address.address,
            derivation_path=str(payment.address.path),
            network=payment.address.network,
            address_kind=payment.address.kind,
            expected_amount=payment.expected_amount,
            observed_amount=payment.observed_amount,
            excess_amount=excess_amount(
                payment.observed_amount, payment.expected_amount
            ),
            state=payment.state,
            needs_review=payment.needs_review,
            confirmations_required=payment.confirmations_required,
            confirmations_seen=payment.confirmations_seen,
            expires_at=payment.expires_at,
            transactions=[
                TransactionResponseDTO(
                    tx_hash=tx.tx_hash,
                    amount=tx.amount,
                    confirmations=tx.confirmations,
                    dropped=tx.dropped,
                )
                for tx in payment.transactions
            ],
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )


class ChainNotificationDTO(BaseModel):
    """Push notification about a transaction paying one of our addresses."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "address": "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu",
                "tx_hash": "a" * 64,
                "value": 150000,
                "confirmations": 1,
            }
        }
    )

    address: str = Field(..., min_length=1, max_length=100)
    tx_hash: str
    value: int = Field(..., ge=0, description="Amount paid to the address")
    confirmations: int = Field(..., ge=0)
    dropped: bool = False

    @field_validator("tx_hash")
    @classmethod
    def validate_tx_hash(cls, v: str) -> str:
        if not _TX_HASH_RE.match(v):
            raise ValueError("tx_hash must be 64 hex characters")
        return v.lower()

    def to_event(self) -> ChainEvent:
        return ChainEvent(
            address=self.address,
            tx_hash=self.tx_hash,
            amount=self.value,
            confirmations=0 if self.dropped else self.confirmations,
            kind=ChainEventKind.DROPPED if self.dropped else ChainEventKind.SEEN,
            source=EventSource.PUSH,
        )


class WebhookAckDTO(CommonSerializersMixin, BaseModel):
    status: Literal["accepted", "ignored"]
    payment_id: Optional[UUID] = None
    state: Optional[PaymentState] = None


class AccountXpubDTO(BaseModel):
    account_index: int
    network: Network
    address_kind: AddressKind
    derivation_path: str
    xpub: str
