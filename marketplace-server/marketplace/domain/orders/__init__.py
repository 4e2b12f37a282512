from .models import ALLOWED_TRANSITIONS, CancellationResult, OrderSnapshot, SettlementResult
from .service import OrderService

__all__ = ["ALLOWED_TRANSITIONS", "CancellationResult", "OrderService", "OrderSnapshot", "SettlementResult"]
