"""SQLAlchemy-backed repository implementations."""

from .account_repository import SqlAccountRepository
from .audit_repository import SqlAuditRepository
from .dispute_repository import SqlDisputeRepository
from .notification_repository import SqlNotificationRepository
from .order_repository import SqlOrderRepository
from .payment_intent_repository import SqlPaymentIntentRepository
from .service_repository import SqlServiceRepository
from .setting_repository import SqlSettingRepository
from .wallet_repository import SqlWalletRepository
from .withdrawal_repository import SqlWithdrawalRepository

__all__ = [
    "SqlAccountRepository",
    "SqlAuditRepository",
    "SqlDisputeRepository",
    "SqlNotificationRepository",
    "SqlOrderRepository",
    "SqlPaymentIntentRepository",
    "SqlServiceRepository",
    "SqlSettingRepository",
    "SqlWalletRepository",
    "SqlWithdrawalRepository",
]
