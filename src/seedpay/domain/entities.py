"""Domain entities: derivation paths, payment addresses and payments."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Final, List, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    model_serializer,
    model_validator,
)

from .errors import InvalidDerivationPath

HARDENED_OFFSET: Final[int] = 0x80000000


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Network(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"


class AddressKind(str, Enum):
    """Receiving address encodings.

    ``p2wpkh`` is the witness-style (bech32) encoding, ``p2pkh`` the legacy
    base58check one.
    """

    P2WPKH = "p2wpkh"
    P2PKH = "p2pkh"


class PaymentState(str, Enum):
    AWAITING = "awaiting"
    DETECTED = "detected"
    CONFIRMING = "confirming"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"
    FAILED = "failed"
    NEEDS_REVIEW = "needs_review"


TERMINAL_STATES: Final[frozenset[PaymentState]] = frozenset(
    {PaymentState.CONFIRMED, PaymentState.EXPIRED, PaymentState.FAILED}
)

# States the chain observer keeps polling for.
WATCHED_STATES: Final[frozenset[PaymentState]] = frozenset(
    {
        PaymentState.AWAITING,
        PaymentState.DETECTED,
        PaymentState.CONFIRMING,
        PaymentState.NEEDS_REVIEW,
    }
)


class PathSegment(BaseModel):
    """One level of a BIP32 derivation path."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, lt=HARDENED_OFFSET)
    hardened: bool = False

    @property
    def child_number(self) -> int:
        return self.index + HARDENED_OFFSET if self.hardened else self.index

    def __str__(self) -> str:
        return f"{self.index}'" if self.hardened else str(self.index)


def _parse_segments(text: str) -> list[dict[str, Any]]:
    parts = text.strip().split("/")
    if not parts or parts[0] != "m":
        raise InvalidDerivationPath(f"Derivation path must start with 'm': {text!r}")
    segments: list[dict[str, Any]] = []
    for raw in parts[1:]:
        hardened = raw.endswith(("'", "h", "H"))
        digits = raw[:-1] if hardened else raw
        if not digits.isdigit():
            raise InvalidDerivationPath(f"Invalid path segment {raw!r} in {text!r}")
        index = int(digits)
        if index >= HARDENED_OFFSET:
            raise InvalidDerivationPath(f"Path index {index} out of range in {text!r}")
        segments.append({"index": index, "hardened": hardened})
    return segments


class DerivationPath(BaseModel):
    """Ordered (index, hardened) segments, rendered as ``m/84'/0'/0'/0/7``.

    Serializes to its text form so it can be stored next to every address and
    used to re-derive the same key from the seed alone.
    """

    model_config = ConfigDict(frozen=True)

    segments: tuple[PathSegment, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _accept_text(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"segments": _parse_segments(data)}
        return data

    @model_serializer
    def _serialize(self) -> str:
        return str(self)

    @classmethod
    def parse(cls, text: str) -> "DerivationPath":
        return cls(segments=tuple(PathSegment(**s) for s in _parse_segments(text)))

    def child(self, index: int, hardened: bool = False) -> "DerivationPath":
        return DerivationPath(
            segments=(*self.segments, PathSegment(index=index, hardened=hardened))
        )

    @property
    def parent(self) -> "DerivationPath":
        return DerivationPath(segments=self.segments[:-1])

    @property
    def depth(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        return "m" + "".join(f"/{segment}" for segment in self.segments)


class PaymentAddress(BaseModel):
    """A derived receiving address together with the path that produced it."""

    model_config = ConfigDict(frozen=True)

    path: DerivationPath
    address: str = Field(..., min_length=1)
    network: Network
    kind: AddressKind
    account_index: int = Field(..., ge=0, lt=HARDENED_OFFSET)
    address_index: int = Field(..., ge=0, lt=HARDENED_OFFSET)
    created_at: datetime = Field(default_factory=utc_now)

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> str:
        return value.isoformat()


class TrackedTransaction(BaseModel):
    """A funding transaction observed for a payment address."""

    tx_hash: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0)
    confirmations: int = Field(0, ge=0)
    dropped: bool = False
    # Set once the chain rolled this transaction back (dropped or reorged).
    rolled_back: bool = False
    first_seen_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class StateChange(BaseModel):
    from_state: PaymentState
    to_state: PaymentState
    at: datetime = Field(default_factory=utc_now)
    reason: str = ""


class Payment(BaseModel):
    """Ledger entry tracking one order's receiving address to finality."""

    id: UUID = Field(default_factory=uuid4)
    address: PaymentAddress
    expected_amount: int = Field(..., gt=0, description="Smallest currency unit")
    state: PaymentState = PaymentState.AWAITING
    observed_amount: int = Field(0, ge=0)
    confirmations_required: int = Field(..., ge=1)
    confirmations_seen: int = Field(0, ge=0)
    expires_at: datetime
    transactions: List[TrackedTransaction] = Field(default_factory=list)
    needs_review: bool = False
    # Polling stops for a payment under review once its window has passed.
    watch_closed: bool = False
    history: List[StateChange] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: Optional[datetime] = None
    version: int = Field(0, ge=0)

    @field_serializer("id")
    def serialize_id(self, value: UUID) -> str:
        return str(value)

    @field_serializer("expires_at", "created_at")
    def serialize_datetime(self, value: datetime) -> str:
        return value.isoformat()

    @field_serializer("updated_at")
    def serialize_updated_at(self, value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_watched(self) -> bool:
        return self.state in WATCHED_STATES and not self.watch_closed

    def find_transaction(self, tx_hash: str) -> Optional[TrackedTransaction]:
        for tx in self.transactions:
            if tx.tx_hash == tx_hash:
                return tx
        return None
