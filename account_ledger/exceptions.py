"""Error hierarchy raised by the ledger engine and account store."""


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    code = "ledger_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgumentError(LedgerError):
    """Raised when a required input is missing or malformed."""

    code = "invalid_argument"


class AccountConflictError(LedgerError):
    """Raised when an account number is already taken."""

    code = "conflict"


class AccountNotFoundError(LedgerError):
    """Raised when a referenced account number does not exist."""

    code = "not_found"


class InsufficientBalanceError(LedgerError):
    """Raised when a Saving account would go below zero."""

    code = "insufficient_balance"


class OverdraftExceededError(LedgerError):
    """Raised when a checking account would breach the overdraft floor."""

    code = "overdraft_exceeded"

    def __init__(self, message: str, limit):
        super().__init__(message)
        self.limit = limit


class StorageError(LedgerError):
    """Raised when the storage backend fails."""

    code = "storage_error"
