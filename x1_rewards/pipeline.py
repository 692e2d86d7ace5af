"""Run orchestration: setup checks, the epoch walk, and the final summary."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from x1_rewards.aggregator import summarize
from x1_rewards.errors import RewardsError, SetupError
from x1_rewards.fetcher import EpochRewardFetcher
from x1_rewards.models import FailureTally, RewardRecord, SummaryStats, lamports_to_xnt
from x1_rewards.rpc import X1RPCClient, safe_int
from x1_rewards.walker import DEFAULT_PROGRESS_INTERVAL, ProgressCallback, walk_epochs

logger = logging.getLogger(__name__)


@dataclass
class RewardReport:
    vote_pubkey: str
    current_epoch: int
    activation_epoch: int
    records: List[RewardRecord]
    tally: FailureTally
    summary: SummaryStats
    generated_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @property
    def has_rewards(self) -> bool:
        return bool(self.records)


def activation_epoch_from(vote_account: Dict[str, Any]) -> int:
    """Approximate activation epoch: first entry of ``epochCredits``."""
    credits = vote_account.get("epochCredits") or []
    if credits and credits[0]:
        return safe_int(credits[0][0]) or 0
    return 0


async def log_rpc_health(client: X1RPCClient) -> None:
    try:
        epoch_info = await client.get_epoch_info()
    except RewardsError as exc:
        logger.error("RPC health check failed: %s", exc)
        return
    logger.debug("RPC Health - Current Epoch: %s", epoch_info.get("epoch"))
    logger.debug("Absolute Slot: %s", epoch_info.get("absoluteSlot"))


async def collect_rewards(
    client: X1RPCClient,
    vote_pubkey: str,
    fetcher: EpochRewardFetcher,
    max_epochs: Optional[int] = None,
    *,
    concurrency: int = 1,
    progress: Optional[ProgressCallback] = None,
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL,
) -> RewardReport:
    """Resolve the vote account and current epoch, then walk and summarize.

    Failures before the walk starts raise :class:`SetupError`; failures of
    individual epochs are only counted in the tally.
    """
    if logger.isEnabledFor(logging.DEBUG):
        await log_rpc_health(client)

    try:
        balance = await client.get_balance(vote_pubkey)
        logger.info("Vote account balance: %s XNT", lamports_to_xnt(balance))
    except RewardsError as exc:
        logger.warning("Could not read vote account balance: %s", exc)

    try:
        vote_account = await client.find_vote_account(vote_pubkey)
        current_epoch = await client.get_current_epoch()
    except SetupError:
        raise
    except RewardsError as exc:
        raise SetupError(f"Unable to prepare reward scan for {vote_pubkey}: {exc}") from exc

    activation_epoch = activation_epoch_from(vote_account)
    logger.info("Current epoch %d; vote account active since approx. epoch %d", current_epoch, activation_epoch)

    result = await walk_epochs(
        fetcher,
        vote_pubkey,
        current_epoch,
        max_epochs,
        concurrency=concurrency,
        progress=progress,
        progress_interval=progress_interval,
    )
    return RewardReport(
        vote_pubkey=vote_pubkey,
        current_epoch=current_epoch,
        activation_epoch=activation_epoch,
        records=result.records,
        tally=result.tally,
        summary=summarize(result.records, result.tally),
    )
