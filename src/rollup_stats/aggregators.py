#!/usr/bin/env python3
"""Proof and slashing aggregation.

Each aggregator is a local accumulator for a single scan: it consumes decoded
events one by one and produces an immutable summary at the end.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .models import (
    AttesterSlashRecord,
    LogEvent,
    ProofReference,
    ProofStats,
    ProverRecord,
    SlashDetail,
    SlashStats,
)

PROOF_EVENT = "L2ProofVerified"
SLASH_EVENT = "Slashed"

# Get logger for this module
logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _ProverTally:
    proof_count: int = 0
    blocks: list[ProofReference] = field(default_factory=list)


@dataclass(slots=True)
class _SlashTally:
    slash_count: int = 0
    total_amount: int = 0
    slashes: list[SlashDetail] = field(default_factory=list)


class ProofAggregator:
    """Accumulates L2ProofVerified events into per-prover statistics."""

    def __init__(self) -> None:
        # Insertion order is first-encounter order
        self._provers: dict[str, _ProverTally] = {}
        self.total_proofs = 0
        self.events_skipped = 0

    def consume(self, event: LogEvent) -> None:
        """Record a single proof event."""
        if event.event_name != PROOF_EVENT:
            self.events_skipped += 1
            logger.warning(f"Ignoring unexpected event in proof stream: {event}")
            return

        prover = event.args["proverId"]
        tally = self._provers.setdefault(prover, _ProverTally())
        tally.proof_count += 1
        tally.blocks.append(ProofReference(
            l2_block_number=int(event.args["blockNumber"]),
            tx_hash=event.transaction_hash,
            eth_block_number=event.block_number
        ))
        self.total_proofs += 1

    def consume_all(self, events: Iterable[LogEvent]) -> "ProofAggregator":
        for event in events:
            self.consume(event)
        return self

    def summarize(self) -> ProofStats:
        """Build the summary, provers sorted by proof count (descending, stable)."""
        provers = [
            ProverRecord(
                address=address,
                proof_count=tally.proof_count,
                blocks=tuple(tally.blocks)
            )
            for address, tally in self._provers.items()
        ]
        provers.sort(key=lambda record: record.proof_count, reverse=True)

        return ProofStats(
            total_proofs=self.total_proofs,
            unique_provers=len(self._provers),
            provers=tuple(provers)
        )

    def log_metrics(self) -> None:
        logger.info(
            f"ProofAggregator: proofs={self.total_proofs}, "
            f"provers={len(self._provers)}, skipped={self.events_skipped}"
        )


class SlashAggregator:
    """Accumulates Slashed events into per-attester statistics."""

    def __init__(self) -> None:
        self._attesters: dict[str, _SlashTally] = {}
        self.total_slashes = 0
        self.total_amount_slashed = 0
        self.events_skipped = 0

    def consume(self, event: LogEvent) -> None:
        """Record a single slash event."""
        if event.event_name != SLASH_EVENT:
            self.events_skipped += 1
            logger.warning(f"Ignoring unexpected event in slash stream: {event}")
            return

        attester = event.args["attester"]
        amount = int(event.args["amount"])

        tally = self._attesters.setdefault(attester, _SlashTally())
        tally.slash_count += 1
        tally.total_amount += amount
        tally.slashes.append(SlashDetail(
            amount=amount,
            tx_hash=event.transaction_hash,
            eth_block_number=event.block_number
        ))

        self.total_slashes += 1
        self.total_amount_slashed += amount

    def consume_all(self, events: Iterable[LogEvent]) -> "SlashAggregator":
        for event in events:
            self.consume(event)
        return self

    def summarize(self) -> SlashStats:
        """Build the summary, attesters sorted by slash count (descending, stable)."""
        attesters = [
            AttesterSlashRecord(
                address=address,
                slash_count=tally.slash_count,
                total_amount_slashed=tally.total_amount,
                slashes=tuple(tally.slashes)
            )
            for address, tally in self._attesters.items()
        ]
        attesters.sort(key=lambda record: record.slash_count, reverse=True)

        return SlashStats(
            total_slashes=self.total_slashes,
            total_amount_slashed=self.total_amount_slashed,
            unique_attesters=len(self._attesters),
            attesters=tuple(attesters)
        )

    def log_metrics(self) -> None:
        logger.info(
            f"SlashAggregator: slashes={self.total_slashes}, "
            f"attesters={len(self._attesters)}, amount={self.total_amount_slashed}, "
            f"skipped={self.events_skipped}"
        )
