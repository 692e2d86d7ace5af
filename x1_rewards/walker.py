"""Epoch walker: drives the fetcher from the newest finished epoch back to 0."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from decimal import Decimal
from typing import Callable, Iterable, List, Optional

from x1_rewards.fetcher import EpochRewardFetcher
from x1_rewards.models import EpochOutcome, EpochRewarded, FailureTally, RewardRecord, WalkResult

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

DEFAULT_PROGRESS_INTERVAL = 5


def candidate_epochs(current_epoch: int, max_epochs: Optional[int] = None) -> List[int]:
    """Epochs to attempt, newest first. The current epoch is still running."""
    epochs = list(range(current_epoch - 1, -1, -1))
    if max_epochs is not None:
        epochs = epochs[: max(max_epochs, 0)]
    return epochs


def chronological(records: Iterable[RewardRecord]) -> List[RewardRecord]:
    return sorted(records, key=lambda record: (record.reward_date, record.epoch))


def assign_cumulative_totals(records: List[RewardRecord]) -> List[RewardRecord]:
    """Attach running XNT/USD totals; ``records`` must already be chronological."""
    cumulative_xnt = Decimal(0)
    cumulative_usd = Decimal(0)
    enriched: List[RewardRecord] = []
    for record in records:
        if record.cumulative_xnt is not None or record.cumulative_usd is not None:
            raise ValueError(f"Cumulative totals already assigned for epoch {record.epoch}")
        cumulative_xnt += record.xnt_amount
        cumulative_usd += record.value_usd
        enriched.append(replace(record, cumulative_xnt=cumulative_xnt, cumulative_usd=cumulative_usd))
    return enriched


async def walk_epochs(
    fetcher: EpochRewardFetcher,
    identity: str,
    current_epoch: int,
    max_epochs: Optional[int] = None,
    *,
    concurrency: int = 1,
    progress: Optional[ProgressCallback] = None,
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
) -> WalkResult:
    """Query every candidate epoch once and return the finalized ledger.

    ``max_epochs`` bounds the number of epochs attempted, whatever their
    outcome. With ``concurrency`` above one the queries fan out through a
    semaphore; the result is identical because records are re-sorted and
    the tally only depends on epoch numbers.
    """
    epochs = candidate_epochs(current_epoch, max_epochs)
    estimated_total = len(epochs)
    tally = FailureTally()
    rewards: List[RewardRecord] = []

    if epochs:
        logger.info("Processing epochs from %d back to epoch %d...", epochs[0], epochs[-1])
    else:
        logger.info("No completed epochs to process (current epoch %d)", current_epoch)

    def consume(outcome: EpochOutcome) -> None:
        tally.record(outcome)
        if isinstance(outcome, EpochRewarded):
            rewards.append(outcome.record)
            logger.info("Found reward in epoch %d: %s XNT", outcome.epoch, outcome.record.xnt_amount)
        if progress is not None and (
            tally.total_processed % max(progress_interval, 1) == 0 or tally.total_processed == estimated_total
        ):
            progress(tally.total_processed, estimated_total)

    if concurrency <= 1:
        for epoch in epochs:
            consume(await fetcher.fetch(identity, epoch, current_epoch))
    else:
        semaphore = asyncio.Semaphore(concurrency)

        async def attempt(epoch: int) -> None:
            async with semaphore:
                outcome = await fetcher.fetch(identity, epoch, current_epoch)
            consume(outcome)

        await asyncio.gather(*(attempt(epoch) for epoch in epochs))

    if max_epochs is not None and tally.total_processed >= max_epochs:
        logger.debug("Reached requested limit of %d epochs. Stopping.", max_epochs)

    if tally.failed_total:
        logger.warning(
            "%d epochs failed to query (skipped gracefully); %d in early epochs, %d unexpected",
            tally.failed_total,
            tally.early_failures,
            tally.unexpected_failures,
        )
    approximate = sum(1 for record in rewards if record.date_is_approximate)
    if approximate:
        logger.warning("%d reward dates approximated from epoch offsets (block time unavailable)", approximate)

    records = assign_cumulative_totals(chronological(rewards))
    return WalkResult(records=records, tally=tally)
