"""
Commission calculator.

Pure arithmetic over Decimal. The rider always pays the subtotal; the
platform commission comes out of the driver's payout.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

CENT = Decimal('0.01')


class CommissionType(str, Enum):
    PERCENT = 'percent'
    FLAT = 'flat'

    @classmethod
    def parse(cls, value) -> "CommissionType":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        # Older settings rows use "fixed" for a flat amount
        if normalized == 'fixed':
            return cls.FLAT
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unknown commission type: {value!r}")


@dataclass(frozen=True)
class CommissionBreakdown:
    subtotal: Decimal
    commission_amount: Decimal
    total_amount: Decimal

    @property
    def driver_payout(self) -> Decimal:
        return self.subtotal - self.commission_amount


def to_money(value) -> Decimal:
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a monetary amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_commission(price_per_seat, seats: int, commission_type, commission_value) -> CommissionBreakdown:
    if seats < 1:
        raise ValueError("seats must be at least 1")

    price = to_money(price_per_seat)
    if price < 0:
        raise ValueError("price_per_seat cannot be negative")

    kind = CommissionType.parse(commission_type)
    value = Decimal(str(commission_value))
    if value < 0:
        raise ValueError("commission_value cannot be negative")

    subtotal = to_money(price * seats)

    if kind is CommissionType.PERCENT:
        if value > 100:
            raise ValueError("percent commission cannot exceed 100")
        commission = to_money(subtotal * value / Decimal(100))
    else:
        commission = min(to_money(value), subtotal)

    return CommissionBreakdown(
        subtotal=subtotal,
        commission_amount=commission,
        total_amount=subtotal,
    )


def driver_payout(subtotal, commission_amount) -> Decimal:
    return to_money(Decimal(str(subtotal)) - Decimal(str(commission_amount)))
