from .models import TransactionRecord, WalletSnapshot, WithdrawalRecord
from .service import WalletService

__all__ = ["TransactionRecord", "WalletService", "WalletSnapshot", "WithdrawalRecord"]
