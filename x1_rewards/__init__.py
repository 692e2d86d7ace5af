"""X1 validator inflation-reward ledger.

Walks a vote account's reward history epoch by epoch, prices every payout and
produces a chronological, cumulative ledger with summary statistics.
"""

from x1_rewards.aggregator import summarize
from x1_rewards.models import (
    EpochEmpty,
    EpochFailed,
    EpochRewarded,
    FailureTally,
    RewardRecord,
    SummaryStats,
    WalkResult,
)
from x1_rewards.walker import walk_epochs

__version__ = "0.3.0"

__all__ = [
    "EpochEmpty",
    "EpochFailed",
    "EpochRewarded",
    "FailureTally",
    "RewardRecord",
    "SummaryStats",
    "WalkResult",
    "summarize",
    "walk_epochs",
]
