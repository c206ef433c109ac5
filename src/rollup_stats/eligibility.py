"""
Exit eligibility derivation.

Everything here is a pure function of the stored maturation timestamp and a
caller-supplied ``now``, so a persisted snapshot can be re-evaluated at read
time without re-scanning the chain.
"""

import math
import time
from collections.abc import Iterable
from dataclasses import dataclass, replace

from .models import PendingExit

EXIT_DELAY_SECONDS = 14 * 24 * 60 * 60  # 1,209,600
SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True, slots=True)
class EligibilityCounts:
    can_finalize: int
    cannot_finalize: int


def current_timestamp() -> int:
    """Wall-clock time in whole seconds."""
    return int(time.time())


def maturation_timestamp(initiated_at: int) -> int:
    return initiated_at + EXIT_DELAY_SECONDS


def can_finalize(exitable_at: int, now: int) -> bool:
    return now >= exitable_at


def days_remaining(exitable_at: int, now: int) -> int:
    """Whole days (rounded up) until maturation, 0 once mature."""
    if now >= exitable_at:
        return 0
    return math.ceil((exitable_at - now) / SECONDS_PER_DAY)


def maturation_progress(exitable_at: int, now: int) -> float:
    """Fraction of the exit delay elapsed, clamped to [0, 1]."""
    initiated_at = exitable_at - EXIT_DELAY_SECONDS
    elapsed = now - initiated_at
    return min(max(elapsed / EXIT_DELAY_SECONDS, 0.0), 1.0)


def recompute_eligibility(pending_exits: Iterable[PendingExit], now: int) -> tuple[PendingExit, ...]:
    """Re-evaluate ``can_finalize`` for every exit against ``now``."""
    return tuple(
        replace(exit_, can_finalize=can_finalize(exit_.exitable_at, now))
        for exit_ in pending_exits
    )


def count_eligibility(pending_exits: Iterable[PendingExit]) -> EligibilityCounts:
    can, cannot = 0, 0
    for exit_ in pending_exits:
        if exit_.can_finalize:
            can += 1
        else:
            cannot += 1
    return EligibilityCounts(can_finalize=can, cannot_finalize=cannot)
