"""
Core ride lifecycle operations.

Drivers create rides as drafts, publish them for booking, and later either
cancel or complete them. Cancelling or completing a ride drives every
affected booking through the booking state machine.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from bookings.models import ACTIVE_STATUSES, BookingStatus
from drivers.models import DriverProfile
from rides.models import Ride, RideStatus
from .exceptions import RideNotFoundError, RideNotAvailableError

logger = logging.getLogger(__name__)

RIDE_FIELDS = (
    'origin_name',
    'destination_name',
    'departure_at',
    'price_per_seat',
    'currency_code',
    'seats_total',
    'allow_instant_booking',
)


@dataclass
class RideResult:
    """Result object for ride operations."""
    success: bool
    ride: Optional[Ride] = None
    message: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)


def _driver_profile(driver) -> DriverProfile:
    try:
        return driver.driver_profile
    except DriverProfile.DoesNotExist:
        raise RideNotFoundError("Driver profile not found")


def _get_driver_ride(driver, ride_id: int, lock: bool = False) -> Ride:
    profile = _driver_profile(driver)
    rides = Ride.objects.select_for_update() if lock else Ride.objects
    try:
        return rides.get(id=ride_id, driver_profile=profile)
    except Ride.DoesNotExist:
        raise RideNotFoundError("Ride not found")


# ===================== Driver Operations =====================

def create_ride(driver, **fields) -> Ride:
    """
    Create a draft ride for the driver.

    Args:
        driver: User model instance (driver)
        **fields: Ride attributes; see RIDE_FIELDS

    Returns:
        The draft ride, with every seat available
    """
    profile = _driver_profile(driver)
    if profile.status != 'approved':
        raise RideNotAvailableError("Your driver profile is not approved yet")

    unknown = set(fields) - set(RIDE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown ride fields: {', '.join(sorted(unknown))}")

    seats_total = fields.get('seats_total')
    if not seats_total or seats_total < 1:
        raise RideNotAvailableError("A ride needs at least one seat")

    ride = Ride.objects.create(
        driver_profile=profile,
        city_id=profile.city_id,
        status=RideStatus.DRAFT,
        seats_available=seats_total,
        **fields,
    )
    logger.info("Driver %s created ride %s", driver.id, ride.id)
    return ride


@transaction.atomic
def publish_ride(driver, ride_id: int) -> Ride:
    ride = _get_driver_ride(driver, ride_id, lock=True)

    if ride.status != RideStatus.DRAFT:
        raise RideNotAvailableError(f"Cannot publish - ride is already {ride.status}")
    if not ride.is_upcoming:
        raise RideNotAvailableError("Departure time must be in the future")

    ride.status = RideStatus.PUBLISHED
    ride.published_at = timezone.now()
    ride.save(update_fields=['status', 'published_at', 'updated_at'])
    logger.info("Ride %s published", ride.id)
    return ride


def cancel_ride(driver, ride_id: int, reason: str = "Cancelled by driver", collaborators=None) -> RideResult:
    """
    Cancel a draft or published ride and every active booking on it.

    Booking cancellations here skip the rider-facing cancellation deadline.
    A booking that leaves its active state before it is locked (the expiry
    sweep got there first, say) is skipped rather than aborting the rest.

    Returns:
        RideResult with the cancelled and skipped booking ids in ``extra``
    """
    from services.booking_lifecycle import InvalidTransition, cancel_without_guard
    from services.collaborators import default_collaborators

    collaborators = collaborators or default_collaborators()

    with transaction.atomic():
        ride = _get_driver_ride(driver, ride_id, lock=True)
        if ride.status not in (RideStatus.DRAFT, RideStatus.PUBLISHED):
            raise RideNotAvailableError(f"Cannot cancel - ride is already {ride.status}")
        if not ride.is_upcoming:
            raise RideNotAvailableError("Cannot cancel a ride that has already departed")

        ride.status = RideStatus.CANCELLED
        ride.cancelled_at = timezone.now()
        ride.cancellation_reason = reason
        ride.save(update_fields=['status', 'cancelled_at', 'cancellation_reason', 'updated_at'])

    policy = collaborators.settings.booking_policy()
    cancelled: List[int] = []
    skipped: List[int] = []
    for booking in ride.bookings.filter(status__in=ACTIVE_STATUSES):
        try:
            cancel_without_guard(booking, driver, reason, policy, collaborators, meta={'ride_cancelled': True})
        except InvalidTransition:
            skipped.append(booking.id)
            continue
        cancelled.append(booking.id)

    logger.info(
        "Ride %s cancelled, %s booking(s) cancelled, %s skipped",
        ride.id, len(cancelled), len(skipped),
    )
    return RideResult(
        success=True,
        ride=ride,
        message="Ride cancelled successfully",
        extra={"cancelled_bookings": cancelled, "skipped_bookings": skipped},
    )


def complete_ride(driver, ride_id: int, collaborators=None) -> RideResult:
    """
    Complete a published ride and each of its confirmed bookings.

    A settlement failure on one booking is collected in the result and does
    not stop the others from completing. Bookings that stopped being
    confirmed before they were locked are skipped.
    """
    from services.booking_lifecycle import InvalidTransition, SettlementFailure, complete_booking
    from services.collaborators import default_collaborators

    collaborators = collaborators or default_collaborators()

    with transaction.atomic():
        ride = _get_driver_ride(driver, ride_id, lock=True)
        if ride.status != RideStatus.PUBLISHED:
            raise RideNotAvailableError(f"Cannot complete - ride is {ride.status}")

        ride.status = RideStatus.COMPLETED
        ride.completed_at = timezone.now()
        ride.save(update_fields=['status', 'completed_at', 'updated_at'])

    completed: List[int] = []
    settlement_failures: List[int] = []
    skipped: List[int] = []
    for booking_id in ride.bookings.filter(status=BookingStatus.CONFIRMED).values_list('id', flat=True):
        try:
            complete_booking(driver, booking_id, collaborators=collaborators)
        except InvalidTransition:
            skipped.append(booking_id)
            continue
        except SettlementFailure:
            settlement_failures.append(booking_id)
        completed.append(booking_id)

    if settlement_failures:
        logger.error("Ride %s completed with unsettled bookings %s", ride.id, settlement_failures)

    return RideResult(
        success=True,
        ride=ride,
        message="Ride completed successfully",
        extra={
            "completed_bookings": completed,
            "settlement_failures": settlement_failures,
            "skipped_bookings": skipped,
        },
    )


# ===================== Queries =====================

def get_driver_rides(driver, status: Optional[str] = None):
    profile = _driver_profile(driver)
    rides = Ride.objects.filter(driver_profile=profile)
    if status:
        rides = rides.filter(status=status)
    return rides


def get_published_ride(ride_id: int) -> Ride:
    try:
        return Ride.objects.select_related('driver_profile__user').get(
            id=ride_id, status=RideStatus.PUBLISHED,
        )
    except Ride.DoesNotExist:
        raise RideNotFoundError("Ride not found")
