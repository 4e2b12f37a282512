"""Account domain specific exceptions."""

from marketplace.domain.common.exceptions import InvalidInputError, NotFoundError


class AccountAlreadyExistsError(InvalidInputError):
    """Raised when attempting to create an account with duplicate username."""

    default_message = "Username already exists"


class AccountNotFoundError(NotFoundError):
    """Raised when the requested account cannot be found."""

    default_message = "Account not found"
