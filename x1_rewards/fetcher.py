"""Single-epoch reward lookup.

Turns one ``getInflationReward`` answer into an ``EpochOutcome``. Nothing
raised while querying an epoch escapes :meth:`EpochRewardFetcher.fetch`;
errors become ``EpochFailed`` so the walk can carry on.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional, Tuple

from x1_rewards.models import (
    PRICE_PRECISION,
    USD_PRECISION,
    EpochEmpty,
    EpochFailed,
    EpochOutcome,
    EpochRewarded,
    RewardRecord,
    lamports_to_xnt,
    quantize,
)
from x1_rewards.pricing import PriceSource
from x1_rewards.rpc import ChainClient, safe_int

logger = logging.getLogger(__name__)

SECONDS_PER_EPOCH_ESTIMATE = 86_400


def approximate_epoch_timestamp(epoch: int, current_epoch: int, now: float) -> int:
    """Assume one epoch per day, counting back from ``now``."""
    return int(now) - (current_epoch - epoch) * SECONDS_PER_EPOCH_ESTIMATE


class EpochRewardFetcher:
    def __init__(
        self,
        client: ChainClient,
        price_source: PriceSource,
        pool_address: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.price_source = price_source
        self.pool_address = pool_address
        self.clock = clock

    async def fetch(self, identity: str, epoch: int, current_epoch: int) -> EpochOutcome:
        logger.debug("Querying inflation reward for epoch %d", epoch)
        try:
            reward = await self.client.get_inflation_reward(identity, epoch)
            logger.debug("Raw response for epoch %d: %s", epoch, reward)

            amount = safe_int((reward or {}).get("amount"))
            if amount is None or amount <= 0:
                return EpochEmpty(epoch)

            effective_slot = safe_int(reward.get("effectiveSlot"))
            timestamp, approximate = await self.resolve_timestamp(epoch, current_epoch, effective_slot)
            price = await self.price_source.resolve_price(timestamp, self.pool_address)
            if price is None:
                raise ValueError(f"No price available for epoch {epoch}")
            price_usd = quantize(Decimal(str(price)), PRICE_PRECISION)

            xnt_amount = lamports_to_xnt(amount)
            record = RewardRecord(
                epoch=epoch,
                reward_date=datetime.fromtimestamp(timestamp, tz=timezone.utc),
                xnt_amount=xnt_amount,
                price_usd=price_usd,
                value_usd=quantize(xnt_amount * price_usd, USD_PRECISION),
                effective_slot=effective_slot,
                date_is_approximate=approximate,
            )
        except Exception as exc:  # pylint: disable=broad-except
            logger.debug("Failed to query epoch %d: %s", epoch, exc)
            return EpochFailed(epoch, str(exc) or exc.__class__.__name__)
        return EpochRewarded(record)

    async def resolve_timestamp(
        self,
        epoch: int,
        current_epoch: int,
        effective_slot: Optional[int],
    ) -> Tuple[int, bool]:
        """Return ``(unix_time, is_approximate)`` for a reward.

        The block time of the effective slot wins when the node can supply it
        and it maps to a calendar date; otherwise the day-per-epoch estimate
        is used. This never fails.
        """
        if effective_slot is not None:
            try:
                block_time = await self.client.get_block_time(effective_slot)
                if block_time:
                    datetime.fromtimestamp(block_time, tz=timezone.utc)
            except Exception as exc:  # pylint: disable=broad-except
                logger.debug(
                    "Unusable block time for slot %d in epoch %d: %s", effective_slot, epoch, exc
                )
            else:
                if block_time:
                    logger.debug("Using real block time for epoch %d: %d", epoch, block_time)
                    return block_time, False

        logger.debug("Using fallback timestamp for epoch %d", epoch)
        return approximate_epoch_timestamp(epoch, current_epoch, self.clock()), True
