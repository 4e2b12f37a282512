"""Account domain exports"""

from .exceptions import AccountAlreadyExistsError, AccountNotFoundError
from .models import Account, AccountCreateInput
from .service import AccountService

__all__ = [
    "Account",
    "AccountAlreadyExistsError",
    "AccountCreateInput",
    "AccountNotFoundError",
    "AccountService",
]
