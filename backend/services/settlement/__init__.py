"""
Settlement service - driver wallet ledger, booking payouts and withdrawals.
"""

from .exceptions import InsufficientBalanceError, InvalidAmountError, PayoutError, PayoutNotFoundError
from .payouts import (
    approve_payout,
    list_driver_payouts,
    mark_payout_paid,
    reject_payout,
    request_payout,
)
from .settlement import (
    SettlementRunResult,
    find_unsettled_bookings,
    settle_booking,
    settle_unsettled_bookings,
)
from .wallet_ledger import adjust, credit, debit, get_or_create_wallet

__all__ = [
    "settle_booking",
    "find_unsettled_bookings",
    "settle_unsettled_bookings",
    "SettlementRunResult",
    "get_or_create_wallet",
    "credit",
    "debit",
    "adjust",
    "request_payout",
    "approve_payout",
    "reject_payout",
    "mark_payout_paid",
    "list_driver_payouts",
    "InvalidAmountError",
    "InsufficientBalanceError",
    "PayoutError",
    "PayoutNotFoundError",
]
