"""Reconciliation policy: how observed funds compare to what an order expects.

Pure functions, shared by the state machine and the export DTOs.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List

from ...domain.entities import TrackedTransaction


class AmountStatus(str, Enum):
    EXACT = "exact"
    UNDER = "under"
    OVER = "over"


def credited_transactions(
    transactions: Iterable[TrackedTransaction],
) -> List[TrackedTransaction]:
    return [tx for tx in transactions if not tx.dropped and tx.amount > 0]


def credited_amount(transactions: Iterable[TrackedTransaction]) -> int:
    return sum(tx.amount for tx in credited_transactions(transactions))


def effective_confirmations(
    transactions: Iterable[TrackedTransaction], expected_amount: int
) -> int:
    """Depth of the funding set that covers ``expected_amount``.

    Transactions are taken deepest first until their amounts reach the expected
    amount; the result is the confirmation count of the shallowest one taken.
    When credited funds never reach the expected amount, every credited
    transaction counts and the minimum over all of them is returned.
    """
    credited = sorted(
        credited_transactions(transactions),
        key=lambda tx: tx.confirmations,
        reverse=True,
    )
    if not credited:
        return 0
    total = 0
    for tx in credited:
        total += tx.amount
        if total >= expected_amount:
            return tx.confirmations
    return credited[-1].confirmations


def classify_amount(observed_amount: int, expected_amount: int) -> AmountStatus:
    if observed_amount < expected_amount:
        return AmountStatus.UNDER
    if observed_amount > expected_amount:
        return AmountStatus.OVER
    return AmountStatus.EXACT


def is_settled(
    *,
    observed_amount: int,
    expected_amount: int,
    confirmations: int,
    confirmations_required: int,
) -> bool:
    """Underpayments never settle; exact and overpayments settle at depth."""
    return (
        classify_amount(observed_amount, expected_amount) is not AmountStatus.UNDER
        and confirmations >= confirmations_required
    )


def excess_amount(observed_amount: int, expected_amount: int) -> int:
    return max(0, observed_amount - expected_amount)
