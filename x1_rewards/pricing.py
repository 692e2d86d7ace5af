"""XNT/USD price sources.

No public API exposes historical XNT prices yet, so the only source shipped
here answers every lookup with a configured constant. Anything implementing
``resolve_price`` can take its place.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Protocol, Union

from x1_rewards.models import PRICE_PRECISION, quantize

logger = logging.getLogger(__name__)


class PriceSource(Protocol):
    async def resolve_price(self, timestamp: int, pool_address: Optional[str]) -> Decimal:
        ...


class FallbackPriceSource:
    def __init__(self, fallback_price_usd: Union[Decimal, float, str]) -> None:
        price = Decimal(str(fallback_price_usd))
        if price < 0:
            raise ValueError(f"Fallback price must be non-negative, got {price}")
        self.fallback_price_usd = quantize(price, PRICE_PRECISION)
        self._announced = False

    async def resolve_price(self, timestamp: int, pool_address: Optional[str]) -> Decimal:
        day = datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")
        if not self._announced:
            logger.info(
                "No historical XNT price API available; pricing every reward at fallback $%s",
                self.fallback_price_usd,
            )
            self._announced = True
        logger.debug(
            "Price lookup for pool %s at %s: using fallback $%s",
            pool_address,
            day,
            self.fallback_price_usd,
        )
        return self.fallback_price_usd
