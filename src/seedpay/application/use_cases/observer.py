"""Chain observer: turns indexer polls and pushed notifications into ChainEvents."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from prometheus_client import Counter

from ...domain.entities import Payment, utc_now
from ...domain.errors import (
    ChainQueryError,
    ConcurrentUpdateError,
    PaymentNotFoundError,
)
from ...domain.events import AddressActivity, ChainEvent, ChainEventKind, EventSource
from ...domain.payment_repository import PaymentRepository
from ...domain.shared import ChainDataSource
from ..dtos import ChainNotificationDTO
from .confirmation import is_overdue
from .payment import PaymentService

logger = logging.getLogger(__name__)


observer_poll_cycles_total = Counter(
    "observer_poll_cycles_total",
    "Completed chain polling cycles",
)

chain_query_failures_total = Counter(
    "chain_query_failures_total",
    "Chain queries that produced no answer",
    ["reason"],
)

chain_events_applied_total = Counter(
    "chain_events_applied_total",
    "Chain events routed to the payment ledger",
    ["source", "kind"],
)


@dataclass
class PollReport:
    watched: int = 0
    expired: int = 0
    queried: int = 0
    failed_queries: int = 0
    events_applied: int = 0


def diff_activity(payment: Payment, activity: AddressActivity) -> List[ChainEvent]:
    """Events that bring the ledger's view of ``payment`` in line with ``activity``.

    Transactions already recorded at the same depth produce nothing; credited
    transactions the source no longer reports become DROPPED.
    """
    events: List[ChainEvent] = []
    reported = set()
    for funding in activity.transactions:
        reported.add(funding.tx_hash)
        known = payment.find_transaction(funding.tx_hash)
        if known is None and funding.amount == 0:
            continue
        if (
            known is None
            or known.dropped
            or known.confirmations != funding.confirmations
        ):
            events.append(
                ChainEvent(
                    address=payment.address.address,
                    tx_hash=funding.tx_hash,
                    amount=funding.amount,
                    confirmations=funding.confirmations,
                    kind=ChainEventKind.SEEN,
                    source=EventSource.POLL,
                )
            )
    for known in payment.transactions:
        if not known.dropped and known.tx_hash not in reported:
            events.append(
                ChainEvent(
                    address=payment.address.address,
                    tx_hash=known.tx_hash,
                    amount=known.amount,
                    confirmations=0,
                    kind=ChainEventKind.DROPPED,
                    source=EventSource.POLL,
                )
            )
    return events


class ChainObserver:
    """Polls a chain data source for watched addresses and ingests pushes.

    Both paths end in ``PaymentService.apply_event``, so there is one update path
    into the ledger. Chain I/O always happens before the ledger update and never
    while a payment lock is held.
    """

    def __init__(
        self,
        payment_service: PaymentService,
        payment_repository: PaymentRepository,
        chain_source: Optional[ChainDataSource] = None,
        *,
        poll_interval_seconds: float = 30.0,
        query_timeout_seconds: float = 10.0,
        query_retries: int = 3,
        backoff_seconds: float = 0.5,
        max_concurrent_queries: int = 8,
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.payment_service = payment_service
        self.payment_repository = payment_repository
        self.chain_source = chain_source
        self.poll_interval_seconds = poll_interval_seconds
        self.query_timeout_seconds = query_timeout_seconds
        self.query_retries = query_retries
        self.backoff_seconds = backoff_seconds
        self.max_concurrent_queries = max_concurrent_queries
        self.clock = clock
        self._sleep = sleep

    async def _query(self, address: str) -> Optional[AddressActivity]:
        """Ask the chain source about ``address``; None means no answer this cycle."""
        if self.chain_source is None:
            raise RuntimeError("No chain data source configured")
        for attempt in range(self.query_retries + 1):
            try:
                return await asyncio.wait_for(
                    self.chain_source.get_address_activity(address),
                    timeout=self.query_timeout_seconds,
                )
            except asyncio.TimeoutError:
                chain_query_failures_total.labels(reason="timeout").inc()
                logger.warning("Chain query for %s timed out", address)
                return None
            except ChainQueryError as e:
                if attempt >= self.query_retries:
                    chain_query_failures_total.labels(reason="error").inc()
                    logger.warning(
                        "Chain query for %s failed after %d attempts: %s",
                        address,
                        attempt + 1,
                        e,
                    )
                    return None
                delay = self.backoff_seconds * (2**attempt)
                delay += random.uniform(0.1, 0.3) * delay
                logger.warning(
                    "Chain query for %s failed (%s), retrying in %.2fs",
                    address,
                    e,
                    delay,
                )
                await self._sleep(delay)
        return None

    async def _apply(self, event: ChainEvent) -> Optional[Payment]:
        payment = await self.payment_service.apply_event(event)
        if payment is not None:
            chain_events_applied_total.labels(
                source=event.source.value, kind=event.kind.value
            ).inc()
        return payment

    async def _poll_payment(
        self, payment: Payment, report: PollReport, semaphore: asyncio.Semaphore
    ) -> None:
        async with semaphore:
            activity = await self._query(payment.address.address)
        if activity is None:
            report.failed_queries += 1
            return
        report.queried += 1

        for event in diff_activity(payment, activity):
            try:
                await self._apply(event)
                report.events_applied += 1
            except ConcurrentUpdateError:
                logger.warning(
                    "Payment %s kept changing; retrying next cycle", payment.id
                )
                return

    async def poll_once(self) -> PollReport:
        """Run one polling cycle over every watched payment."""
        report = PollReport()
        now = self.clock()
        payments = await self.payment_repository.list_awaiting()
        report.watched = len(payments)

        to_query: List[Payment] = []
        for payment in payments:
            if not is_overdue(payment, now):
                to_query.append(payment)
                continue
            try:
                await self.payment_service.expire(payment.id)
                report.expired += 1
            except (ConcurrentUpdateError, PaymentNotFoundError) as e:
                logger.warning("Could not expire payment %s: %s", payment.id, e)

        if self.chain_source is not None and to_query:
            semaphore = asyncio.Semaphore(self.max_concurrent_queries)
            await asyncio.gather(
                *(self._poll_payment(p, report, semaphore) for p in to_query)
            )

        observer_poll_cycles_total.inc()
        logger.debug(
            "Poll cycle: %d watched, %d expired, %d queried, %d failed, %d events",
            report.watched,
            report.expired,
            report.queried,
            report.failed_queries,
            report.events_applied,
        )
        return report

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Poll every ``poll_interval_seconds`` until ``stop_event`` is set."""
        stop_event = stop_event or asyncio.Event()
        logger.info(
            "Chain observer polling every %.1fs", self.poll_interval_seconds
        )
        while not stop_event.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("Chain polling cycle failed")
            try:
                await asyncio.wait_for(
                    stop_event.wait(), timeout=self.poll_interval_seconds
                )
            except asyncio.TimeoutError:
                pass
        logger.info("Chain observer stopped")

    async def ingest_notification(
        self, notification: ChainNotificationDTO
    ) -> Optional[Payment]:
        """Apply a pushed notification. Returns None for unknown addresses."""
        return await self._apply(notification.to_event())
