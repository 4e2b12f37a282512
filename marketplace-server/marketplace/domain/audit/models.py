"""Audit event types and snapshot."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

PAYMENT_ATTEMPT = "payment_attempt"
PAYMENT_SUCCESS = "payment_success"
PAYMENT_FAILURE = "payment_failure"
SECURITY_VIOLATION = "security_violation"
WITHDRAWAL_REQUEST = "withdrawal_request"
WITHDRAWAL_RECONCILIATION_REQUIRED = "withdrawal_reconciliation_required"
ORDER_CANCELLED = "order_cancelled"
PAYMENT_REFUNDED = "payment_refunded"
DISPUTE_RESOLVED = "dispute_resolved"

SEVERITIES = ("info", "low", "medium", "high", "critical")


@dataclass(slots=True)
class AuditRecord:
    id: int
    type: str
    user_id: Optional[str]
    severity: str
    details: Optional[str]
    ip_address: Optional[str]
    user_agent: Optional[str]
    created_at: Optional[datetime]
