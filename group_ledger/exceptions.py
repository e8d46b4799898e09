from decimal import Decimal


class LedgerError(Exception):
    """Base class for every error raised by the ledger."""
    pass


class InvalidAmount(LedgerError, ValueError):
    """Raised when an amount or rate is malformed, zero or out of range."""
    pass


class InsufficientPending(LedgerError):
    """Raised when a deposit would clear more than the group currently owes."""

    def __init__(self, required: Decimal, available: Decimal):
        self.required = required
        self.available = available
        super().__init__(
            f'Deposit needs {required} pending but only {available} is owed'
        )


class AccountNotFound(LedgerError, LookupError):
    """Raised by read-only queries for a chat that has no account yet."""

    def __init__(self, chat_id: str):
        self.chat_id = chat_id
        super().__init__(f'No ledger account for chat {chat_id}')


class StoreUnavailable(LedgerError):
    """Raised when the database cannot begin, run or commit a unit of work."""
    pass
