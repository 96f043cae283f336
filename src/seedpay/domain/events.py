"""Chain-facing value types shared by the polling and push paths."""

from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChainEventKind(str, Enum):
    SEEN = "seen"
    DROPPED = "dropped"


class EventSource(str, Enum):
    POLL = "poll"
    PUSH = "push"


class ChainEvent(BaseModel):
    """Single internal event consumed by the confirmation state machine.

    Both the indexer poller and the webhook receiver produce this type, so the
    state machine is written once regardless of transport.
    """

    model_config = ConfigDict(frozen=True)

    address: str = Field(..., min_length=1)
    tx_hash: str = Field(..., min_length=1)
    amount: int = Field(0, ge=0)
    confirmations: int = Field(0, ge=0)
    kind: ChainEventKind = ChainEventKind.SEEN
    source: EventSource = EventSource.POLL

    @field_validator("tx_hash")
    @classmethod
    def normalize_tx_hash(cls, v: str) -> str:
        return v.strip().lower()


class FundingTransaction(BaseModel):
    """A transaction paying an address, as reported by a chain data source."""

    tx_hash: str
    amount: int = Field(..., ge=0)
    confirmations: int = Field(0, ge=0)

    @field_validator("tx_hash")
    @classmethod
    def normalize_tx_hash(cls, v: str) -> str:
        return v.strip().lower()


class AddressActivity(BaseModel):
    """Snapshot answer to a chain query for one address."""

    address: str
    transactions: List[FundingTransaction] = Field(default_factory=list)
