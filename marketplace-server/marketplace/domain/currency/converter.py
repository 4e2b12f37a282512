"""Currency conversion backed by a TTL cache of exchange rates."""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable

from marketplace.domain.common.exceptions import InvalidInputError, ProviderError

from .sources import RateSource

logger = logging.getLogger(__name__)


class CurrencyConverter:
    """Convert amounts between currencies.

    Rates are fetched from ``source`` at most once per ``ttl_seconds``. When a
    refresh fails the previously fetched rates keep being served and the source
    is not asked again for ``retry_seconds``.
    """

    def __init__(
        self,
        source: RateSource,
        *,
        base: str = "XOF",
        ttl_seconds: float = 3600,
        retry_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._base = base.upper()
        self._ttl = ttl_seconds
        self._retry = min(retry_seconds, ttl_seconds)
        self._clock = clock
        self._rates: dict[str, Decimal] | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def base(self) -> str:
        return self._base

    def invalidate(self) -> None:
        self._expires_at = 0.0

    async def rates(self) -> dict[str, Decimal]:
        if self._rates is not None and self._clock() < self._expires_at:
            return self._rates
        async with self._lock:
            if self._rates is not None and self._clock() < self._expires_at:
                return self._rates
            try:
                fetched = await self._source.fetch_rates()
            except ProviderError:
                if self._rates is None:
                    raise
                logger.warning(
                    "Exchange rate refresh failed, serving cached rates for another %s seconds", self._retry
                )
                self._expires_at = self._clock() + self._retry
                return self._rates
            fetched[self._base] = Decimal("1")
            self._rates = fetched
            self._expires_at = self._clock() + self._ttl
            return self._rates

    async def convert(self, amount: Decimal, to_currency: str, from_currency: str | None = None) -> Decimal:
        source = (from_currency or self._base).upper()
        target = to_currency.upper()
        if source == target:
            return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        rates = await self.rates()
        missing = [code for code in (source, target) if code not in rates]
        if missing:
            raise InvalidInputError("Unsupported currency", details={"currencies": missing})
        converted = amount / rates[source] * rates[target]
        return converted.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
