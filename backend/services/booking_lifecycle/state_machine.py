"""
Booking transition table and the single function that applies it.

Every status change of an existing booking goes through ``apply_transition``:
it locks the booking row, checks the current status against the event's
legal sources under that lock, writes status and timestamp, releases seats
where the table says so and appends one BookingEvent.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional

from django.db import transaction
from django.utils import timezone

from bookings.models import Booking, BookingEvent, BookingStatus
from services.inventory import release_seats

from .exceptions import BookingNotFoundError, InvalidTransition

logger = logging.getLogger(__name__)

S = BookingStatus

# Every non-terminal booking holds its seats on the ride
HOLD_STATUSES = frozenset({S.REQUESTED, S.PAYMENT_PENDING})
UNCONFIRMED_STATUSES = HOLD_STATUSES | {S.ACCEPTED}
SEAT_HOLDING_STATUSES = UNCONFIRMED_STATUSES | {S.CONFIRMED}


@dataclass(frozen=True)
class Transition:
    event: str
    sources: FrozenSet[str]
    target: str
    timestamp_field: Optional[str] = None
    # Prior statuses from which the booking still holds seats to hand back
    releases_from: FrozenSet[str] = frozenset()


TRANSITIONS: Dict[str, Transition] = {t.event: t for t in (
    Transition('accepted', frozenset({S.REQUESTED}), S.ACCEPTED, 'accepted_at'),
    # The caller passes a fresh hold_expires_at in `updates`
    Transition('payment_requested', frozenset({S.ACCEPTED}), S.PAYMENT_PENDING),
    Transition('confirmed', frozenset({S.ACCEPTED, S.PAYMENT_PENDING}), S.CONFIRMED, 'confirmed_at'),
    Transition('rejected', frozenset({S.REQUESTED, S.PAYMENT_PENDING}), S.REJECTED, 'rejected_at',
               releases_from=HOLD_STATUSES),
    Transition('cancelled', frozenset({S.REQUESTED, S.PAYMENT_PENDING, S.ACCEPTED, S.CONFIRMED}),
               S.CANCELLED, 'cancelled_at', releases_from=SEAT_HOLDING_STATUSES),
    Transition('expired', frozenset({S.REQUESTED, S.PAYMENT_PENDING}), S.EXPIRED,
               releases_from=HOLD_STATUSES),
    Transition('completed', frozenset({S.CONFIRMED}), S.COMPLETED, 'completed_at'),
    # A confirmed seat stays sold when its payment is refunded
    Transition('refunded', frozenset({S.REQUESTED, S.ACCEPTED, S.PAYMENT_PENDING, S.CONFIRMED}),
               S.REFUNDED, 'refunded_at', releases_from=UNCONFIRMED_STATUSES),
)}


def allowed_events(status: str):
    return sorted(event for event, t in TRANSITIONS.items() if status in t.sources)


@transaction.atomic
def apply_transition(
    booking_id: int,
    event: str,
    performed_by=None,
    meta: Optional[dict] = None,
    updates: Optional[dict] = None,
    guard: Optional[Callable[[Booking], bool]] = None,
    now=None,
) -> Booking:
    """
    Move a booking through `event`.

    `updates` are extra field values saved with the status change. `guard`
    is evaluated under the row lock; returning False rejects the transition
    like an illegal source status would.
    """
    transition = TRANSITIONS[event]

    try:
        booking = Booking.objects.select_for_update().get(pk=booking_id)
    except Booking.DoesNotExist:
        raise BookingNotFoundError(f"Booking {booking_id} not found")

    prior_status = booking.status
    if prior_status not in transition.sources or (guard is not None and not guard(booking)):
        logger.error(
            "Rejected %s on booking %s in status %s",
            event, booking_id, prior_status,
        )
        raise InvalidTransition(booking_id, event, prior_status)

    now = now or timezone.now()
    update_fields = ['status', 'updated_at']

    booking.status = transition.target
    if transition.timestamp_field and transition.timestamp_field not in (updates or {}):
        setattr(booking, transition.timestamp_field, now)
        update_fields.append(transition.timestamp_field)

    for field, value in (updates or {}).items():
        setattr(booking, field, value)
        update_fields.append(field)

    booking.save(update_fields=update_fields)

    event_meta = {'from': prior_status, **(meta or {})}

    if prior_status in transition.releases_from:
        released = booking.ride_id is not None and release_seats(booking.ride_id, booking.seats_requested)
        if not released:
            event_meta['seat_release_failed'] = True
            logger.error(
                "Could not release %s seat(s) of ride %s for booking %s",
                booking.seats_requested, booking.ride_id, booking_id,
            )

    BookingEvent.objects.create(
        booking=booking,
        event=event,
        performed_by=performed_by,
        meta=event_meta,
        created_at=now,
    )

    logger.info("Booking %s: %s -> %s (%s)", booking_id, prior_status, transition.target, event)
    return booking
