"""
Settlement of completed bookings into driver wallets.

A booking is paid out at most once: an existing earning row is returned
as-is, and the partial unique constraint on WalletTransaction turns a
concurrent duplicate insert into an IntegrityError that resolves to the row
that won.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from django.db import IntegrityError, transaction
from django.db.models import F

from bookings.models import Booking, BookingEvent, BookingStatus
from services.booking_lifecycle.exceptions import SettlementFailure
from wallets.models import TransactionType, WalletTransaction

from .wallet_ledger import credit

logger = logging.getLogger(__name__)


def _existing_earning(booking_id: int) -> Optional[WalletTransaction]:
    return WalletTransaction.objects.filter(booking_id=booking_id, type=TransactionType.EARNING).first()


def settle_booking(booking_id: int) -> Optional[WalletTransaction]:
    """
    Credit the driver's wallet with the payout of a completed booking.

    Returns:
        The earning transaction, or None when the payout is zero

    Raises:
        SettlementFailure: If the booking cannot be settled or the credit failed
    """
    booking = Booking.objects.select_related('driver_profile').filter(pk=booking_id).first()
    if booking is None:
        raise SettlementFailure(booking_id, "booking not found")
    if booking.status != BookingStatus.COMPLETED:
        raise SettlementFailure(booking_id, f"booking is {booking.status}, not completed")
    if booking.driver_profile_id is None:
        raise SettlementFailure(booking_id, "booking has no driver profile")

    existing = _existing_earning(booking_id)
    if existing is not None:
        return existing

    payout = booking.driver_payout
    if payout <= 0:
        logger.info("Booking %s has no driver payout (commission %s)", booking_id, booking.commission_amount)
        return None

    try:
        with transaction.atomic():
            txn = credit(
                booking.driver_profile,
                payout,
                TransactionType.EARNING,
                booking=booking,
                description=f"Earning for booking #{booking.id}",
                meta={
                    'subtotal': str(booking.subtotal),
                    'commission_type': booking.commission_type,
                    'commission_value': str(booking.commission_value),
                    'commission_amount': str(booking.commission_amount),
                },
            )
            BookingEvent.objects.create(
                booking=booking,
                event='settled',
                meta={'amount': str(payout), 'wallet_transaction_id': txn.id},
            )
    except IntegrityError:
        existing = _existing_earning(booking_id)
        if existing is not None:
            logger.info("Booking %s was settled concurrently", booking_id)
            return existing
        logger.critical("Settlement of booking %s hit an integrity error", booking_id, exc_info=True)
        raise SettlementFailure(booking_id, "integrity error while posting earning")
    except Exception as exc:
        logger.critical("Settlement of booking %s failed", booking_id, exc_info=True)
        raise SettlementFailure(booking_id, str(exc)) from exc

    logger.info("Settled booking %s: %s credited to driver profile %s", booking_id, payout, booking.driver_profile_id)
    return txn


def find_unsettled_bookings():
    """Completed bookings with a positive payout and no earning posted yet."""
    return (
        Booking.objects.filter(status=BookingStatus.COMPLETED, subtotal__gt=F('commission_amount'))
        .exclude(wallet_transactions__type=TransactionType.EARNING)
        .order_by('completed_at', 'id')
    )


@dataclass
class SettlementRunResult:
    settled: List[int] = field(default_factory=list)
    failed: List[tuple] = field(default_factory=list)

    @property
    def status(self) -> str:
        return 'success' if not self.failed else 'failure'

    @property
    def message(self) -> str:
        message = f"Settled {len(self.settled)} booking(s)"
        if self.failed:
            ids = ", ".join(str(booking_id) for booking_id, _ in self.failed)
            message += f"; {len(self.failed)} failed: {ids}"
        return message


def settle_unsettled_bookings(limit: Optional[int] = None) -> SettlementRunResult:
    result = SettlementRunResult()
    booking_ids = list(find_unsettled_bookings().values_list('id', flat=True))
    if limit:
        booking_ids = booking_ids[:limit]

    for booking_id in booking_ids:
        try:
            settle_booking(booking_id)
        except SettlementFailure as exc:
            result.failed.append((booking_id, str(exc)))
        else:
            result.settled.append(booking_id)

    if booking_ids:
        logger.info(result.message)
    return result
