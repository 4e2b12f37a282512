"""Domain model for freelance service listings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional


@dataclass(slots=True)
class ServiceListing:
    id: str
    freelance_id: str
    title: str
    description: Optional[str]
    price: Decimal
    currency: str
    status: str
    created_at: Optional[datetime]

    @property
    def is_active(self) -> bool:
        return self.status == "active"
