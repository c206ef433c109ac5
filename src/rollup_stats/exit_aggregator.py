#!/usr/bin/env python3
"""Withdrawal lifecycle aggregation.

Correlates WithdrawInitiated and WithdrawFinalised events per attester and
derives the still-pending exits with their maturation time.

Events carry no withdrawal id, so pending exits are matched FIFO: the
finalizations are assumed to consume the oldest initiated withdrawals, and
the newest ``initiated - finalized`` ones are reported as pending.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from .eligibility import can_finalize, count_eligibility, maturation_timestamp
from .models import (
    AttesterExitRecord,
    ExitStats,
    FinalizedWithdrawal,
    InitiatedWithdrawal,
    LogEvent,
    PendingExit,
)

INITIATED_EVENT = "WithdrawInitiated"
FINALIZED_EVENT = "WithdrawFinalised"
EXIT_EVENTS = (INITIATED_EVENT, FINALIZED_EVENT)

# Get logger for this module
logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _ExitTally:
    initiated_count: int = 0
    finalized_count: int = 0
    total_initiated_amount: int = 0
    total_finalized_amount: int = 0
    initiated: list[InitiatedWithdrawal] = field(default_factory=list)
    finalized: list[FinalizedWithdrawal] = field(default_factory=list)


def split_exit_events(events: Iterable[LogEvent]) -> tuple[list[LogEvent], list[LogEvent]]:
    """Separate initiated and finalized events, keeping order within each."""
    initiated: list[LogEvent] = []
    finalized: list[LogEvent] = []
    for event in events:
        if event.event_name == INITIATED_EVENT:
            initiated.append(event)
        elif event.event_name == FINALIZED_EVENT:
            finalized.append(event)
        else:
            logger.warning(f"Ignoring unexpected event in exit stream: {event}")
    return initiated, finalized


class ExitAggregator:
    """
    Accumulates withdrawal events into per-attester exit statistics.

    ``now`` is fixed at construction so every initiated withdrawal of a scan
    is evaluated against the same instant.
    """

    def __init__(self, now: int) -> None:
        """
        Initialize the aggregator.

        Args:
            now: Evaluation time (seconds since epoch) for ``can_finalize``
        """
        self.now = now
        self._attesters: dict[str, _ExitTally] = {}
        self.total_initiated = 0
        self.total_finalized = 0

    def add_initiated(self, event: LogEvent, block_timestamp: int) -> None:
        """
        Record a WithdrawInitiated event.

        Args:
            event: The decoded event
            block_timestamp: Timestamp of the block the event was emitted in
        """
        exitable_at = maturation_timestamp(block_timestamp)
        tally = self._attesters.setdefault(event.args["attester"], _ExitTally())
        amount = int(event.args["amount"])

        tally.initiated.append(InitiatedWithdrawal(
            recipient=event.args["recipient"],
            amount=amount,
            tx_hash=event.transaction_hash,
            eth_block_number=event.block_number,
            initiated_at=block_timestamp,
            exitable_at=exitable_at,
            can_finalize=can_finalize(exitable_at, self.now)
        ))
        tally.initiated_count += 1
        tally.total_initiated_amount += amount
        self.total_initiated += 1

    def add_finalized(self, event: LogEvent) -> None:
        """Record a WithdrawFinalised event."""
        tally = self._attesters.setdefault(event.args["attester"], _ExitTally())
        amount = int(event.args["amount"])

        tally.finalized.append(FinalizedWithdrawal(
            recipient=event.args["recipient"],
            amount=amount,
            tx_hash=event.transaction_hash,
            eth_block_number=event.block_number
        ))
        tally.finalized_count += 1
        tally.total_finalized_amount += amount
        self.total_finalized += 1

    def consume(
        self,
        initiated_events: Iterable[LogEvent],
        finalized_events: Iterable[LogEvent],
        timestamps: Mapping[int, int]
    ) -> "ExitAggregator":
        """
        Record all initiated events, then all finalized events.

        Raises:
            KeyError: If an initiated event's block has no resolved timestamp
        """
        for event in initiated_events:
            self.add_initiated(event, timestamps[event.block_number])
        for event in finalized_events:
            self.add_finalized(event)
        return self

    def pending_exits(self) -> list[PendingExit]:
        """Pending exits in attester order, newest-initiated tail per attester."""
        pending: list[PendingExit] = []
        for address, tally in self._attesters.items():
            pending_count = tally.initiated_count - tally.finalized_count
            if pending_count <= 0:
                continue
            for withdrawal in tally.initiated[-pending_count:]:
                pending.append(PendingExit(
                    attester=address,
                    recipient=withdrawal.recipient,
                    amount=withdrawal.amount,
                    tx_hash=withdrawal.tx_hash,
                    eth_block_number=withdrawal.eth_block_number,
                    initiated_at=withdrawal.initiated_at,
                    exitable_at=withdrawal.exitable_at,
                    can_finalize=withdrawal.can_finalize
                ))
        return pending

    def summarize(self) -> ExitStats:
        """
        Build the summary.

        Pending exits are sorted soonest-maturing first; attesters by
        initiated count, descending. Both sorts are stable.
        """
        pending = self.pending_exits()
        pending.sort(key=lambda exit_: exit_.exitable_at)
        counts = count_eligibility(pending)

        attesters = [
            AttesterExitRecord(
                address=address,
                initiated_count=tally.initiated_count,
                finalized_count=tally.finalized_count,
                total_initiated_amount=tally.total_initiated_amount,
                total_finalized_amount=tally.total_finalized_amount,
                initiated=tuple(tally.initiated),
                finalized=tuple(tally.finalized)
            )
            for address, tally in self._attesters.items()
        ]
        attesters.sort(key=lambda record: record.initiated_count, reverse=True)

        return ExitStats(
            total_initiated=self.total_initiated,
            total_finalized=self.total_finalized,
            total_pending=len(pending),
            pending_can_finalize=counts.can_finalize,
            pending_cannot_finalize=counts.cannot_finalize,
            unique_attesters=len(self._attesters),
            pending_exits=tuple(pending),
            attesters=tuple(attesters)
        )

    def log_metrics(self) -> None:
        logger.info(
            f"ExitAggregator: initiated={self.total_initiated}, "
            f"finalized={self.total_finalized}, attesters={len(self._attesters)}"
        )
