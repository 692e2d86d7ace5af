"""Data structures produced and consumed by the reward pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Union

from x1_rewards.classifier import FailureKind, classify_failure

LAMPORTS_PER_XNT = Decimal(10**9)
XNT_PRECISION = Decimal("0.000001")
PRICE_PRECISION = Decimal("0.000001")
USD_PRECISION = Decimal("0.0001")
PERCENT_PRECISION = Decimal("0.01")
NOT_AVAILABLE = "N/A"
REWARD_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def quantize(value: Decimal, precision: Decimal) -> Decimal:
    return value.quantize(precision, rounding=ROUND_HALF_UP)


def lamports_to_xnt(value: int) -> Decimal:
    return quantize(Decimal(value) / LAMPORTS_PER_XNT, XNT_PRECISION)


@dataclass(frozen=True)
class RewardRecord:
    epoch: int
    reward_date: datetime
    xnt_amount: Decimal
    price_usd: Decimal
    value_usd: Decimal
    effective_slot: Optional[int] = None
    date_is_approximate: bool = False
    cumulative_xnt: Optional[Decimal] = None
    cumulative_usd: Optional[Decimal] = None

    @property
    def reward_date_text(self) -> str:
        return self.reward_date.strftime(REWARD_DATE_FORMAT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "epoch": self.epoch,
            "rewardDate": self.reward_date_text,
            "xntAmount": str(self.xnt_amount),
            "cumulativeXNT": str(self.cumulative_xnt) if self.cumulative_xnt is not None else NOT_AVAILABLE,
            "priceUSD": str(self.price_usd),
            "valueUSD": str(self.value_usd),
            "cumulativeUSD": str(self.cumulative_usd) if self.cumulative_usd is not None else NOT_AVAILABLE,
        }


@dataclass(frozen=True)
class EpochRewarded:
    record: RewardRecord

    @property
    def epoch(self) -> int:
        return self.record.epoch


@dataclass(frozen=True)
class EpochEmpty:
    epoch: int


@dataclass(frozen=True)
class EpochFailed:
    epoch: int
    reason: str


EpochOutcome = Union[EpochRewarded, EpochEmpty, EpochFailed]


@dataclass
class FailureTally:
    """Per-run counters; every attempted epoch lands in exactly one bucket."""

    total_processed: int = 0
    rewarded: int = 0
    empty: int = 0
    failed_total: int = 0
    early_failures: int = 0
    unexpected_failures: int = 0
    failed_epochs: List[int] = field(default_factory=list)

    @property
    def expected_epochs(self) -> int:
        return self.total_processed - self.early_failures

    def record(self, outcome: EpochOutcome) -> None:
        self.total_processed += 1
        if isinstance(outcome, EpochRewarded):
            self.rewarded += 1
        elif isinstance(outcome, EpochEmpty):
            self.empty += 1
        else:
            self.failed_total += 1
            self.failed_epochs.append(outcome.epoch)
            if classify_failure(outcome.epoch) is FailureKind.EARLY:
                self.early_failures += 1
            else:
                self.unexpected_failures += 1


@dataclass(frozen=True)
class SummaryStats:
    epochs_with_rewards: int
    first_date: Optional[date]
    last_date: Optional[date]
    days_covered: Optional[int]
    total_xnt: Decimal
    total_usd: Decimal
    average_per_day: str
    average_per_epoch: str
    percentage_with_rewards: str
    percentage_expected_with_rewards: str

    @property
    def date_range(self) -> str:
        first = self.first_date.isoformat() if self.first_date else NOT_AVAILABLE
        last = self.last_date.isoformat() if self.last_date else NOT_AVAILABLE
        return f"{first} to {last}"

    @property
    def days_covered_text(self) -> str:
        return NOT_AVAILABLE if self.days_covered is None else str(self.days_covered)


@dataclass
class WalkResult:
    records: List[RewardRecord]
    tally: FailureTally
