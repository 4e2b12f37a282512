"""Service listing exports"""

from .models import ServiceListing
from .service import ServiceCatalog

__all__ = ["ServiceCatalog", "ServiceListing"]
