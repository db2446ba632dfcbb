"""Custom exceptions for the driver wallet ledger."""


class InvalidAmountError(Exception):
    """Raised when a ledger amount is zero, negative or not a number."""
    pass


class InsufficientBalanceError(Exception):
    """Raised when a debit would take the wallet balance below zero."""
    pass


class PayoutError(Exception):
    """Raised when a payout request breaks a payout rule or is in the wrong status."""
    pass


class PayoutNotFoundError(PayoutError):
    pass
