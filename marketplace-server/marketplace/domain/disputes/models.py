"""Domain models for order disputes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

RESOLUTION_OUTCOMES = ("complete", "cancel")


@dataclass(slots=True)
class DisputeSnapshot:
    id: str
    order_id: str
    client_id: str
    freelance_id: str
    reason: str
    status: str
    resolution: Optional[str]
    resolved_by: Optional[str]
    resolved_at: Optional[datetime]
    created_at: Optional[datetime]

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.client_id, self.freelance_id)


@dataclass(slots=True)
class DisputeMessageRecord:
    id: str
    dispute_id: str
    user_id: str
    message: str
    attachment_url: Optional[str]
    created_at: Optional[datetime]
