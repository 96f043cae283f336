"""Confirmation state machine.

``apply_event`` and ``expire`` are pure: they never touch storage or the chain and
always return a new ``Payment`` (or the same instance when nothing changed), so
they can run inside ``PaymentRepository.update`` as the mutator.
"""

from __future__ import annotations

from datetime import datetime
from typing import Final, Optional

from ...domain.entities import (
    Payment,
    PaymentState,
    StateChange,
    TrackedTransaction,
    utc_now,
)
from ...domain.events import ChainEvent, ChainEventKind, EventSource
from .reconciliation import (
    credited_amount,
    credited_transactions,
    effective_confirmations,
    is_settled,
)

FORWARD_PATH: Final[tuple[PaymentState, ...]] = (
    PaymentState.AWAITING,
    PaymentState.DETECTED,
    PaymentState.CONFIRMING,
    PaymentState.CONFIRMED,
)

EXPIRABLE_STATES: Final[frozenset[PaymentState]] = frozenset(
    {PaymentState.AWAITING, PaymentState.DETECTED, PaymentState.CONFIRMING}
)


def _merge_event(payment: Payment, event: ChainEvent, now: datetime) -> Optional[str]:
    """Fold one event into the payment's transactions in place.

    Returns a short reason when something changed, None for no-ops.
    """
    tx = payment.find_transaction(event.tx_hash)

    if event.kind is ChainEventKind.DROPPED:
        if tx is None or tx.dropped:
            return None
        tx.dropped = True
        tx.rolled_back = True
        tx.confirmations = 0
        tx.updated_at = now
        return f"transaction {event.tx_hash} dropped"

    if tx is None:
        if event.amount == 0:
            return None
        payment.transactions.append(
            TrackedTransaction(
                tx_hash=event.tx_hash,
                amount=event.amount,
                confirmations=event.confirmations,
                first_seen_at=now,
                updated_at=now,
            )
        )
        return f"transaction {event.tx_hash} seen"

    if event.source is EventSource.PUSH and (
        tx.rolled_back or event.confirmations < tx.confirmations
    ):
        # Pushed notifications can be redelivered late and out of order. Only a
        # fresh poll of the indexer may lower a recorded depth or revive a
        # transaction the chain rolled back.
        return None

    if tx.dropped:
        tx.dropped = False
        tx.confirmations = event.confirmations
        tx.updated_at = now
        return f"transaction {event.tx_hash} reappeared"

    if event.confirmations == tx.confirmations:
        return None

    if event.confirmations < tx.confirmations:
        tx.rolled_back = True
        tx.confirmations = event.confirmations
        tx.updated_at = now
        if event.confirmations == 0:
            return f"reorg: transaction {event.tx_hash} back to unconfirmed"
        return f"reorg: transaction {event.tx_hash} at {event.confirmations} confirmations"

    tx.confirmations = event.confirmations
    tx.updated_at = now
    return f"transaction {event.tx_hash} at {event.confirmations} confirmations"


def _target_state(payment: Payment) -> PaymentState:
    settled = is_settled(
        observed_amount=payment.observed_amount,
        expected_amount=payment.expected_amount,
        confirmations=payment.confirmations_seen,
        confirmations_required=payment.confirmations_required,
    )
    if payment.state is PaymentState.CONFIRMED:
        return PaymentState.CONFIRMED if settled else PaymentState.NEEDS_REVIEW
    if settled:
        return PaymentState.CONFIRMED
    if payment.state is PaymentState.NEEDS_REVIEW:
        return PaymentState.NEEDS_REVIEW

    credited = credited_transactions(payment.transactions)
    if not credited:
        return PaymentState.AWAITING
    if any(tx.confirmations > 0 for tx in credited):
        return PaymentState.CONFIRMING
    return PaymentState.DETECTED


def _transition(
    payment: Payment, target: PaymentState, now: datetime, reason: str
) -> None:
    current = payment.state
    if target is current:
        return

    if target is PaymentState.NEEDS_REVIEW:
        payment.needs_review = True

    if (
        current in FORWARD_PATH
        and target in FORWARD_PATH
        and FORWARD_PATH.index(target) > FORWARD_PATH.index(current)
    ):
        # Record every intermediate state, even when one event jumps several.
        start = FORWARD_PATH.index(current)
        for step in FORWARD_PATH[start + 1 : FORWARD_PATH.index(target) + 1]:
            payment.history.append(
                StateChange(from_state=current, to_state=step, at=now, reason=reason)
            )
            current = step
    else:
        payment.history.append(
            StateChange(from_state=current, to_state=target, at=now, reason=reason)
        )
    payment.state = target


def apply_event(
    payment: Payment, event: ChainEvent, now: Optional[datetime] = None
) -> Payment:
    """Apply one chain event and return the resulting payment."""
    now = now or utc_now()
    if event.address != payment.address.address:
        raise ValueError(
            f"Event for {event.address} cannot be applied to payment {payment.id}"
        )

    payment = expire(payment, now)
    if payment.state in (PaymentState.EXPIRED, PaymentState.FAILED):
        return payment

    updated = payment.model_copy(deep=True)
    reason = _merge_event(updated, event, now)
    if reason is None:
        return payment

    updated.observed_amount = credited_amount(updated.transactions)
    updated.confirmations_seen = effective_confirmations(
        updated.transactions, updated.expected_amount
    )
    _transition(updated, _target_state(updated), now, reason)
    return updated


def is_overdue(payment: Payment, now: datetime) -> bool:
    """True when ``expire`` would change the payment at ``now``."""
    if now < payment.expires_at:
        return False
    if payment.state is PaymentState.NEEDS_REVIEW:
        return not payment.watch_closed
    return payment.state in EXPIRABLE_STATES


def expire(payment: Payment, now: Optional[datetime] = None) -> Payment:
    """Close a payment whose window has passed without settling.

    Nothing ever seen means ``expired``; anything seen (underpaid, dropped or not
    deep enough) means ``failed``. A payment under review keeps its state and
    flag but is no longer polled; pushed events still reach it.
    """
    now = now or utc_now()
    if not is_overdue(payment, now):
        return payment

    updated = payment.model_copy(deep=True)
    if updated.state is PaymentState.NEEDS_REVIEW:
        updated.watch_closed = True
    elif updated.transactions:
        _transition(updated, PaymentState.FAILED, now, "expired before settling")
    else:
        _transition(updated, PaymentState.EXPIRED, now, "no funds before expiry")
    return updated
