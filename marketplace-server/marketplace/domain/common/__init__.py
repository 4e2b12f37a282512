"""Shared abstractions used across domain modules."""

from .exceptions import MarketplaceError
from .repository import AsyncRepository

__all__ = ["AsyncRepository", "MarketplaceError"]
