"""Simple dependency container for wiring core services."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache

from marketplace.core.config import Settings, get_settings
from marketplace.domain.currency import CurrencyConverter, HttpRateSource, RateSource, StaticRateSource
from marketplace.infrastructure.database.session import get_engine
from marketplace.infrastructure.payments import PaymentProvider, build_payment_providers


@dataclass(slots=True)
class ApplicationContainer:
    settings: Settings
    converter: CurrencyConverter
    providers: dict[str, PaymentProvider] = field(default_factory=dict)
    rate_source: RateSource | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApplicationContainer":
        if settings.currency.rates_url:
            source: RateSource = HttpRateSource(settings.currency.rates_url)
        else:
            source = StaticRateSource(settings.currency.rates)
        converter = CurrencyConverter(
            source,
            base=settings.currency.base,
            ttl_seconds=settings.currency.cache_ttl_seconds,
            retry_seconds=settings.currency.refresh_retry_seconds,
        )
        return cls(
            settings=settings,
            converter=converter,
            providers=build_payment_providers(settings),
            rate_source=source,
        )

    def init_infrastructure(self) -> None:
        """Ensure infrastructure singletons (database engine, etc.) are initialised."""
        get_engine()

    async def aclose(self) -> None:
        for provider in self.providers.values():
            await provider.aclose()
        if isinstance(self.rate_source, HttpRateSource):
            await self.rate_source.aclose()


@lru_cache()
def get_container() -> ApplicationContainer:
    container = ApplicationContainer.from_settings(get_settings())
    container.init_infrastructure()
    return container


__all__ = ["ApplicationContainer", "get_container"]
