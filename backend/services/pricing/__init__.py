"""Commission and payout arithmetic."""

from .commission import (
    CommissionBreakdown,
    CommissionType,
    compute_commission,
    driver_payout,
    to_money,
)

__all__ = [
    "CommissionBreakdown",
    "CommissionType",
    "compute_commission",
    "driver_payout",
    "to_money",
]
