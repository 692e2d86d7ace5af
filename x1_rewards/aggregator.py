"""Summary statistics over a finalized reward ledger.

All day counting lives here so every report agrees on the span.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence

from x1_rewards.models import (
    NOT_AVAILABLE,
    PERCENT_PRECISION,
    USD_PRECISION,
    XNT_PRECISION,
    FailureTally,
    RewardRecord,
    SummaryStats,
    quantize,
)


def _ratio(numerator: Decimal, denominator: int, precision: Decimal) -> str:
    if denominator <= 0:
        return NOT_AVAILABLE
    return str(quantize(numerator / Decimal(denominator), precision))


def _percentage(count: int, denominator: int) -> str:
    if denominator <= 0:
        return str(Decimal(0).quantize(PERCENT_PRECISION))
    return str(quantize(Decimal(count) * 100 / Decimal(denominator), PERCENT_PRECISION))


def summarize(records: Sequence[RewardRecord], tally: FailureTally) -> SummaryStats:
    """Derive SummaryStats from chronologically sorted records and the run tally."""
    count = len(records)
    total_xnt = sum((record.xnt_amount for record in records), Decimal(0))
    total_usd = sum((record.value_usd for record in records), Decimal(0))

    if records:
        first_date = records[0].reward_date.date()
        last_date = records[-1].reward_date.date()
        days = (last_date - first_date).days + 1
    else:
        first_date = last_date = None
        days = None

    return SummaryStats(
        epochs_with_rewards=count,
        first_date=first_date,
        last_date=last_date,
        days_covered=days,
        total_xnt=quantize(total_xnt, XNT_PRECISION),
        total_usd=quantize(total_usd, USD_PRECISION),
        average_per_day=_ratio(total_xnt, days or 0, XNT_PRECISION),
        average_per_epoch=_ratio(total_xnt, count, XNT_PRECISION),
        percentage_with_rewards=_percentage(count, tally.total_processed),
        percentage_expected_with_rewards=_percentage(count, tally.expected_epochs),
    )
