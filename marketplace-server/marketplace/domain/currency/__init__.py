from .converter import CurrencyConverter
from .sources import HttpRateSource, RateSource, StaticRateSource

__all__ = ["CurrencyConverter", "HttpRateSource", "RateSource", "StaticRateSource"]
