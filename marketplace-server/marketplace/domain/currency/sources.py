"""Exchange rate sources.

Rates are expressed as units of each currency for one unit of the base
currency.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Mapping, Protocol

import httpx

from marketplace.domain.common.exceptions import ProviderError

logger = logging.getLogger(__name__)


class RateSource(Protocol):
    async def fetch_rates(self) -> dict[str, Decimal]:
        ...


class StaticRateSource:
    def __init__(self, rates: Mapping[str, Decimal]) -> None:
        self._rates = {code.upper(): Decimal(str(value)) for code, value in rates.items()}

    async def fetch_rates(self) -> dict[str, Decimal]:
        return dict(self._rates)


class HttpRateSource:
    """Fetch a JSON document shaped like ``{"rates": {"EUR": 0.0015, ...}}``."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_rates(self) -> dict[str, Decimal]:
        try:
            response = await self._client.get(self._url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Exchange rate request to %s failed: %s", self._url, exc)
            raise ProviderError("Exchange rates unavailable") from exc

        raw = payload.get("rates") if isinstance(payload, dict) else None
        if not isinstance(raw, dict) or not raw:
            raise ProviderError("Exchange rate payload has no rates")
        try:
            return {str(code).upper(): Decimal(str(value)) for code, value in raw.items()}
        except InvalidOperation as exc:
            raise ProviderError("Exchange rate payload is malformed") from exc
