"""
Core booking lifecycle operations.

Each public operation commits its state transition first and only then runs
the follow-up effects: settlement as a required effect, chat and
notifications as best-effort ones. Views call these functions and translate
the exceptions in ``.exceptions`` into HTTP responses.
"""

import logging
from datetime import timedelta
from typing import Optional

from django.db import OperationalError, transaction
from django.db.models import F
from django.utils import timezone

from accounts.models import User
from bookings.models import (
    ACTIVE_STATUSES,
    Booking,
    BookingEvent,
    BookingStatus,
    Payment,
    PaymentMethod,
    PaymentStatus,
)
from drivers.models import DriverProfile
from realtime.notifications import notify_booking_event
from rides.models import Ride
from services.collaborators import BookingCollaborators, PaymentVerdict, default_collaborators
from services.inventory import reserve_seats, run_with_lock_retries
from services.pricing import compute_commission
from services.ride_management.exceptions import RideNotFoundError

from .effects import TransitionEffects
from .exceptions import (
    BookingNotFoundError,
    BookingPermissionError,
    BookingValidationError,
    CancellationNotAllowed,
    CapacityExceeded,
    InvalidTransition,
)
from .state_machine import apply_transition

logger = logging.getLogger(__name__)

GATEWAY_METHODS = frozenset({PaymentMethod.RAZORPAY, PaymentMethod.STRIPE})


# ===================== Helpers =====================

def _get_booking(booking_id: int) -> Booking:
    try:
        return Booking.objects.select_related('ride', 'rider', 'driver_profile').get(pk=booking_id)
    except Booking.DoesNotExist:
        raise BookingNotFoundError(f"Booking {booking_id} not found")


def _driver_profile_for(driver) -> DriverProfile:
    try:
        return driver.driver_profile
    except DriverProfile.DoesNotExist:
        raise BookingPermissionError("Driver profile not found")


def _get_driver_booking(driver, booking_id: int) -> Booking:
    profile = _driver_profile_for(driver)
    booking = _get_booking(booking_id)
    if booking.driver_profile_id != profile.id:
        raise BookingPermissionError("This booking does not belong to one of your rides")
    return booking


def _chat_effects(effects: TransitionEffects, collaborators: BookingCollaborators, booking: Booking,
                  template_key: str, meta: Optional[dict] = None, close: bool = False) -> None:
    conversations = collaborators.conversations
    effects.attempt(
        f"chat:{template_key}",
        lambda: conversations.insert_system_message(booking.id, template_key, meta),
    )
    if close:
        effects.attempt("chat:close", lambda: conversations.close_conversation(booking.id))


def _notify(effects: TransitionEffects, collaborators: BookingCollaborators, event: str,
            booking: Booking, user_id: Optional[int], message: str = "") -> None:
    notifier = collaborators.notifier
    effects.attempt(
        f"notify:{event}:{user_id}",
        lambda: notify_booking_event(notifier, event, booking, user_id, message),
    )


# ===================== Rider Operations =====================

def _check_active_limit(rider, policy, lock: bool = False) -> None:
    if lock:
        # Serializes concurrent requests by the same rider
        User.objects.select_for_update().filter(pk=rider.pk).first()
    active_count = Booking.objects.filter(rider=rider, status__in=ACTIVE_STATUSES).count()
    if active_count >= policy.max_active_requests:
        raise BookingValidationError(
            f"You already have {active_count} active bookings. "
            "Complete or cancel one before booking again."
        )


def _reserve_and_create(rider, ride: Ride, seats_requested: int, payment_method: str,
                        breakdown, policy) -> Booking:
    with transaction.atomic():
        _check_active_limit(rider, policy, lock=True)
        if not reserve_seats(ride.id, seats_requested):
            raise CapacityExceeded()

        now = timezone.now()
        booking = Booking.objects.create(
            ride=ride,
            rider=rider,
            driver_profile_id=ride.driver_profile_id,
            city_id=ride.city_id,
            status=BookingStatus.REQUESTED,
            seats_requested=seats_requested,
            price_per_seat=ride.price_per_seat,
            subtotal=breakdown.subtotal,
            commission_type=policy.commission_type,
            commission_value=policy.commission_value,
            commission_amount=breakdown.commission_amount,
            total_amount=breakdown.total_amount,
            payment_method=payment_method,
            payment_status=(
                PaymentStatus.UNPAID if payment_method == PaymentMethod.CASH else PaymentStatus.PENDING
            ),
            hold_expires_at=now + timedelta(minutes=policy.hold_minutes),
        )
        BookingEvent.objects.create(
            booking=booking,
            event='requested',
            performed_by=rider,
            meta={'seats': seats_requested, 'payment_method': payment_method},
            created_at=now,
        )
        return booking


def create_booking(
    rider,
    ride_id: int,
    seats_requested: int,
    payment_method: str,
    collaborators: Optional[BookingCollaborators] = None,
) -> Booking:
    """
    Request seats on a published ride.

    Args:
        rider: User making the booking
        ride_id: ID of the ride to book
        seats_requested: Number of seats to hold
        payment_method: One of PaymentMethod values

    Returns:
        The new booking, in ``requested`` status (or ``confirmed`` when the
        ride takes instant cash bookings)

    Raises:
        BookingValidationError: On any failed business rule
        CapacityExceeded: If the ride has fewer seats left than requested
        RideNotFoundError: If the ride does not exist
    """
    collaborators = collaborators or default_collaborators()
    policy = collaborators.settings.booking_policy()

    if not isinstance(seats_requested, int) or isinstance(seats_requested, bool) or seats_requested < 1:
        raise BookingValidationError("You must request at least one seat.")

    if payment_method not in PaymentMethod.values:
        raise BookingValidationError("Unsupported payment method.")

    if payment_method == PaymentMethod.CASH and not policy.cash_enabled:
        raise BookingValidationError("Cash payments are currently disabled.")

    try:
        ride = Ride.objects.select_related('driver_profile').get(pk=ride_id)
    except Ride.DoesNotExist:
        raise RideNotFoundError("Ride not found")

    if ride.driver_profile.user_id == rider.id:
        raise BookingValidationError("You cannot book your own ride.")

    if not ride.is_published or not ride.is_upcoming:
        raise BookingValidationError("This ride is not open for booking.")

    _check_active_limit(rider, policy)

    try:
        breakdown = compute_commission(
            ride.price_per_seat,
            seats_requested,
            policy.commission_type,
            policy.commission_value,
        )
    except ValueError as e:
        logger.error("Commission settings rejected for ride %s: %s", ride.id, e)
        raise BookingValidationError("Bookings are unavailable: commission settings are invalid.")

    try:
        booking = run_with_lock_retries(
            _reserve_and_create, rider, ride, seats_requested, payment_method, breakdown, policy,
        )
    except OperationalError:
        logger.warning("Gave up reserving seats on ride %s after lock contention", ride.id)
        raise CapacityExceeded()

    logger.info(
        "Booking %s created: rider %s, ride %s, %s seat(s), %s",
        booking.id, rider.id, ride.id, seats_requested, payment_method,
    )

    effects = TransitionEffects(booking.id)
    _notify(effects, collaborators, 'requested', booking, ride.driver_profile.user_id)
    effects.run()

    if (
        ride.allow_instant_booking
        and not policy.require_driver_acceptance
        and payment_method == PaymentMethod.CASH
    ):
        booking = _accept(booking, None, policy, collaborators)

    return booking


def cancel_booking(
    user,
    booking_id: int,
    reason: str = "",
    collaborators: Optional[BookingCollaborators] = None,
) -> Booking:
    """
    Cancel a booking on behalf of its rider, the ride's driver or staff.

    A paid gateway booking is flagged ``refund_pending`` when the refund
    policy allows refunds; the refund itself arrives later by callback.
    """
    collaborators = collaborators or default_collaborators()
    booking = _get_booking(booking_id)

    is_rider = booking.rider_id == user.id
    is_driver = booking.driver_profile.user_id == user.id
    if not (is_rider or is_driver or user.is_staff):
        raise BookingPermissionError("You cannot cancel this booking")

    policy = collaborators.settings.booking_policy()
    if not booking.can_be_cancelled(policy):
        raise CancellationNotAllowed(
            "This booking can no longer be cancelled."
        )

    cancelled_by = 'rider' if is_rider else 'driver' if is_driver else 'staff'
    return cancel_without_guard(booking, user, reason, policy, collaborators, meta={'cancelled_by': cancelled_by})


def cancel_without_guard(booking: Booking, performer, reason: str, policy,
                         collaborators: BookingCollaborators, meta: Optional[dict] = None) -> Booking:
    """Cancel without the rider-facing deadline check. Used when a ride is called off."""
    updates = {'cancel_reason': reason or None}
    if (
        booking.payment_status == PaymentStatus.PAID
        and booking.payment_method in GATEWAY_METHODS
        and policy.refund_policy != 'none'
    ):
        updates['payment_status'] = PaymentStatus.REFUND_PENDING

    booking = apply_transition(
        booking.id,
        'cancelled',
        performed_by=performer,
        meta={'reason': reason, **(meta or {})},
        updates=updates,
    )

    effects = TransitionEffects(booking.id)
    _chat_effects(effects, collaborators, booking, 'booking_cancelled', {'reason': reason}, close=True)
    driver_user_id = booking.driver_profile.user_id
    performer_id = performer.id if performer is not None else None
    for user_id in (booking.rider_id, driver_user_id):
        if user_id != performer_id:
            _notify(effects, collaborators, 'cancelled', booking, user_id)
    effects.run()
    return booking


# ===================== Driver Operations =====================

def _accept(booking: Booking, performer, policy, collaborators: BookingCollaborators) -> Booking:
    now = timezone.now()
    with transaction.atomic():
        booking = apply_transition(booking.id, 'accepted', performed_by=performer, now=now)
        if booking.payment_method == PaymentMethod.CASH:
            booking = apply_transition(
                booking.id, 'confirmed', performed_by=performer,
                meta={'payment_method': booking.payment_method}, now=now,
            )
        else:
            booking = apply_transition(
                booking.id,
                'payment_requested',
                performed_by=performer,
                updates={'hold_expires_at': now + timedelta(minutes=policy.hold_minutes)},
                now=now,
            )

    effects = TransitionEffects(booking.id)
    effects.attempt(
        "chat:open",
        lambda: collaborators.conversations.get_or_create_conversation(booking),
    )
    _chat_effects(effects, collaborators, booking, 'booking_accepted')
    if booking.status == BookingStatus.CONFIRMED:
        _chat_effects(effects, collaborators, booking, 'booking_confirmed')
        _notify(effects, collaborators, 'confirmed', booking, booking.rider_id)
    else:
        _notify(
            effects, collaborators, 'accepted', booking, booking.rider_id,
            "Your booking was accepted. Complete the payment to confirm your seat.",
        )
    effects.run()
    return booking


def accept_booking(driver, booking_id: int, collaborators: Optional[BookingCollaborators] = None) -> Booking:
    """
    Accept a requested booking on one of the driver's rides.

    Cash bookings are confirmed straight away; gateway bookings move to
    ``payment_pending`` with a fresh hold window for the rider to pay.
    """
    collaborators = collaborators or default_collaborators()
    booking = _get_driver_booking(driver, booking_id)
    policy = collaborators.settings.booking_policy()
    return _accept(booking, driver, policy, collaborators)


def reject_booking(
    driver,
    booking_id: int,
    reason: str = "",
    collaborators: Optional[BookingCollaborators] = None,
) -> Booking:
    collaborators = collaborators or default_collaborators()
    booking = _get_driver_booking(driver, booking_id)

    booking = apply_transition(
        booking.id, 'rejected', performed_by=driver, meta={'reason': reason},
    )

    effects = TransitionEffects(booking.id)
    _chat_effects(effects, collaborators, booking, 'booking_rejected', {'reason': reason}, close=True)
    _notify(effects, collaborators, 'rejected', booking, booking.rider_id)
    effects.run()
    return booking


def complete_booking(driver, booking_id: int, collaborators: Optional[BookingCollaborators] = None) -> Booking:
    """
    Mark a confirmed booking as completed and settle the driver's earning.

    Raises:
        SettlementFailure: If the wallet credit could not be posted. The
            booking stays completed and can be settled again later.
    """
    from services.settlement import settle_booking

    collaborators = collaborators or default_collaborators()
    booking = _get_driver_booking(driver, booking_id)

    with transaction.atomic():
        booking = apply_transition(booking.id, 'completed', performed_by=driver)
        User.objects.filter(
            pk__in=[booking.rider_id, booking.driver_profile.user_id]
        ).update(completed_rides=F('completed_rides') + 1)

    policy = collaborators.settings.booking_policy()
    effects = TransitionEffects(booking.id)
    effects.must("settlement", lambda: settle_booking(booking.id))
    _chat_effects(
        effects, collaborators, booking, 'booking_completed',
        close=not policy.chat_allow_after_completion,
    )
    _notify(effects, collaborators, 'completed', booking, booking.rider_id)
    effects.run()
    return booking


# ===================== System Operations =====================

def confirm_booking(
    booking_id: int,
    performer=None,
    meta: Optional[dict] = None,
    updates: Optional[dict] = None,
    collaborators: Optional[BookingCollaborators] = None,
) -> Booking:
    collaborators = collaborators or default_collaborators()
    booking = apply_transition(booking_id, 'confirmed', performed_by=performer, meta=meta, updates=updates)
    _confirmed_effects(booking, collaborators).run()
    return booking


def _confirmed_effects(booking: Booking, collaborators: BookingCollaborators) -> TransitionEffects:
    effects = TransitionEffects(booking.id)
    _chat_effects(effects, collaborators, booking, 'booking_confirmed')
    _notify(effects, collaborators, 'confirmed', booking, booking.rider_id)
    return effects


def expire_booking(booking_id: int, now=None, collaborators: Optional[BookingCollaborators] = None) -> Booking:
    """
    Expire a booking whose seat hold has lapsed.

    The hold deadline is checked again under the row lock, so a booking that
    was accepted or had its hold refreshed in the meantime raises
    InvalidTransition instead of expiring.
    """
    collaborators = collaborators or default_collaborators()
    now = now or timezone.now()

    def hold_lapsed(booking):
        return booking.hold_expires_at is not None and booking.hold_expires_at < now

    booking = apply_transition(
        booking_id,
        'expired',
        performed_by=None,
        meta={'reason': 'hold_expired'},
        guard=hold_lapsed,
        now=now,
    )

    effects = TransitionEffects(booking.id)
    effects.attempt("chat:close", lambda: collaborators.conversations.close_conversation(booking.id))
    _notify(effects, collaborators, 'expired', booking, booking.rider_id)
    effects.run()
    return booking


def refund_booking(
    booking_id: int,
    performer=None,
    reason: Optional[str] = None,
    collaborators: Optional[BookingCollaborators] = None,
) -> Booking:
    """
    Refund a booking that has not reached a terminal state.

    Seats held by a booking that was never confirmed go back on sale; a
    confirmed booking keeps its seats.
    """
    collaborators = collaborators or default_collaborators()
    booking = _refund(booking_id, performer, reason)
    _refunded_effects(booking, collaborators).run()
    return booking


@transaction.atomic
def _refund(booking_id: int, performer, reason: Optional[str], meta: Optional[dict] = None) -> Booking:
    try:
        booking = Booking.objects.select_for_update().get(pk=booking_id)
    except Booking.DoesNotExist:
        raise BookingNotFoundError(f"Booking {booking_id} not found")

    updates = {}
    if booking.payment_status in (PaymentStatus.PAID, PaymentStatus.REFUND_PENDING):
        updates['payment_status'] = PaymentStatus.REFUNDED
    return apply_transition(
        booking_id,
        'refunded',
        performed_by=performer,
        meta={'reason': reason, **(meta or {})},
        updates=updates,
    )


def _refunded_effects(booking: Booking, collaborators: BookingCollaborators) -> TransitionEffects:
    effects = TransitionEffects(booking.id)
    effects.attempt("chat:close", lambda: collaborators.conversations.close_conversation(booking.id))
    _notify(effects, collaborators, 'refunded', booking, booking.rider_id)
    return effects


# ===================== Payment Callbacks =====================

def _validate_provider(provider: str) -> None:
    if provider not in GATEWAY_METHODS:
        raise BookingValidationError(f"Unknown payment provider: {provider}")


def handle_payment_callback(
    booking_id: int,
    provider: str,
    provider_ref: str,
    collaborators: Optional[BookingCollaborators] = None,
) -> Booking:
    """
    Apply a payment gateway callback.

    Safe to call repeatedly: a booking that is already paid, or a reference
    that was already recorded as paid, is returned unchanged. The gateway is
    queried before any row lock is taken.
    """
    collaborators = collaborators or default_collaborators()
    _validate_provider(provider)
    booking = _get_booking(booking_id)

    already_paid = Payment.objects.filter(
        provider=provider, provider_ref=provider_ref, status='paid',
    ).exists()
    if already_paid or booking.payment_status == PaymentStatus.PAID:
        logger.info("Duplicate payment callback %s:%s for booking %s", provider, provider_ref, booking_id)
        return booking

    verdict = collaborators.payments.verify_payment(booking_id, provider_ref)

    with transaction.atomic():
        locked = Booking.objects.select_for_update().get(pk=booking_id)
        if locked.payment_status == PaymentStatus.PAID:
            return locked

        if verdict != PaymentVerdict.PAID:
            Payment.objects.update_or_create(
                provider=provider,
                provider_ref=provider_ref,
                defaults={
                    'booking': locked,
                    'amount': locked.total_amount,
                    'status': 'failed',
                },
            )
            locked.payment_status = PaymentStatus.FAILED
            locked.save(update_fields=['payment_status', 'updated_at'])
            logger.warning("Payment %s:%s failed for booking %s", provider, provider_ref, booking_id)
            return locked

        Payment.objects.update_or_create(
            provider=provider,
            provider_ref=provider_ref,
            defaults={
                'booking': locked,
                'amount': locked.total_amount,
                'currency_code': locked.ride.currency_code if locked.ride_id else 'INR',
                'status': 'paid',
            },
        )
        booking = apply_transition(
            booking_id,
            'confirmed',
            meta={'provider': provider, 'provider_ref': provider_ref},
            updates={'payment_status': PaymentStatus.PAID},
        )

    _confirmed_effects(booking, collaborators).run()
    return booking


def handle_refund_callback(
    booking_id: int,
    provider: str,
    provider_ref: str,
    reason: Optional[str] = None,
    collaborators: Optional[BookingCollaborators] = None,
) -> Booking:
    """
    Apply a gateway refund notification.

    The reference must match a paid Payment of this booking and the gateway
    must confirm the refund; otherwise BookingValidationError is raised and
    nothing changes. Active bookings go through the ``refunded`` transition.
    A booking that was cancelled with a refund pending keeps its status and
    only has the payment marked refunded.
    """
    collaborators = collaborators or default_collaborators()
    _validate_provider(provider)
    meta = {'provider': provider, 'provider_ref': provider_ref}

    booking = _get_booking(booking_id)
    if booking.status == BookingStatus.REFUNDED or booking.payment_status == PaymentStatus.REFUNDED:
        logger.info("Duplicate refund callback %s:%s for booking %s", provider, provider_ref, booking_id)
        return booking

    payment = Payment.objects.filter(
        booking_id=booking_id, provider=provider, provider_ref=provider_ref, status='paid',
    ).first()
    if payment is None:
        logger.warning(
            "Refund callback %s:%s matches no paid payment of booking %s",
            provider, provider_ref, booking_id,
        )
        raise BookingValidationError("No paid payment of this booking matches the refund.")

    verdict = collaborators.payments.verify_refund(booking_id, provider_ref)
    if verdict != PaymentVerdict.REFUNDED:
        logger.warning("Gateway did not confirm refund %s:%s for booking %s", provider, provider_ref, booking_id)
        raise BookingValidationError("The payment gateway did not confirm this refund.")

    with transaction.atomic():
        booking = Booking.objects.select_for_update().get(pk=booking_id)

        if booking.status == BookingStatus.REFUNDED or booking.payment_status == PaymentStatus.REFUNDED:
            logger.info("Duplicate refund callback %s:%s for booking %s", provider, provider_ref, booking_id)
            return booking

        if booking.status in ACTIVE_STATUSES:
            booking = _refund(booking_id, None, reason, meta)
        elif booking.status == BookingStatus.CANCELLED and booking.payment_status == PaymentStatus.REFUND_PENDING:
            now = timezone.now()
            booking.payment_status = PaymentStatus.REFUNDED
            booking.refunded_at = now
            booking.save(update_fields=['payment_status', 'refunded_at', 'updated_at'])
            BookingEvent.objects.create(
                booking=booking,
                event='refund_recorded',
                meta={'from': booking.status, 'reason': reason, **meta},
                created_at=now,
            )
        else:
            logger.error(
                "Refund callback for booking %s in status %s/%s",
                booking_id, booking.status, booking.payment_status,
            )
            raise InvalidTransition(booking_id, 'refunded', booking.status)

        Payment.objects.filter(pk=payment.pk).update(status='refunded', updated_at=timezone.now())

    _refunded_effects(booking, collaborators).run()
    return booking


# ===================== Queries =====================

def get_booking_for_user(user, booking_id: int) -> Booking:
    booking = _get_booking(booking_id)
    if user.is_staff or booking.rider_id == user.id or booking.driver_profile.user_id == user.id:
        return booking
    raise BookingPermissionError("You do not have access to this booking")


def list_rider_bookings(rider, status: Optional[str] = None):
    bookings = Booking.objects.filter(rider=rider).select_related('ride', 'driver_profile__user')
    if status:
        bookings = bookings.filter(status=status)
    return bookings


def list_driver_bookings(driver, status: Optional[str] = None, ride_id: Optional[int] = None):
    profile = _driver_profile_for(driver)
    bookings = Booking.objects.filter(driver_profile=profile).select_related('ride', 'rider')
    if status:
        bookings = bookings.filter(status=status)
    if ride_id:
        bookings = bookings.filter(ride_id=ride_id)
    return bookings
