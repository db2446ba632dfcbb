from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone


class BookingStatus(models.TextChoices):
    REQUESTED = 'requested', 'Requested'
    ACCEPTED = 'accepted', 'Accepted'
    REJECTED = 'rejected', 'Rejected'
    PAYMENT_PENDING = 'payment_pending', 'Payment pending'
    CONFIRMED = 'confirmed', 'Confirmed'
    CANCELLED = 'cancelled', 'Cancelled'
    COMPLETED = 'completed', 'Completed'
    EXPIRED = 'expired', 'Expired'
    REFUNDED = 'refunded', 'Refunded'


TERMINAL_STATUSES = frozenset({
    BookingStatus.REJECTED,
    BookingStatus.CANCELLED,
    BookingStatus.COMPLETED,
    BookingStatus.EXPIRED,
    BookingStatus.REFUNDED,
})

HOLD_STATUSES = frozenset({BookingStatus.REQUESTED, BookingStatus.PAYMENT_PENDING})

ACTIVE_STATUSES = frozenset({
    BookingStatus.REQUESTED,
    BookingStatus.ACCEPTED,
    BookingStatus.PAYMENT_PENDING,
    BookingStatus.CONFIRMED,
})

# Statuses from which a cancel request is refused before reaching the state machine
NON_CANCELLABLE_STATUSES = frozenset({
    BookingStatus.CANCELLED,
    BookingStatus.COMPLETED,
    BookingStatus.EXPIRED,
    BookingStatus.REFUNDED,
})


class PaymentMethod(models.TextChoices):
    CASH = 'cash', 'Cash'
    RAZORPAY = 'razorpay', 'Razorpay'
    STRIPE = 'stripe', 'Stripe'


class PaymentStatus(models.TextChoices):
    UNPAID = 'unpaid', 'Unpaid (cash)'
    PENDING = 'pending', 'Pending'
    PAID = 'paid', 'Paid'
    FAILED = 'failed', 'Failed'
    REFUND_PENDING = 'refund_pending', 'Refund pending'
    REFUNDED = 'refunded', 'Refunded'


class Booking(models.Model):
    """A rider's claim on seats of a ride. Amounts are snapshots taken at creation."""

    ride = models.ForeignKey(
        'rides.Ride',
        on_delete=models.SET_NULL,
        null=True,
        related_name='bookings'
    )
    rider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='bookings'
    )
    driver_profile = models.ForeignKey(
        'drivers.DriverProfile',
        on_delete=models.PROTECT,
        related_name='bookings'
    )
    city_id = models.PositiveIntegerField(null=True, blank=True, db_index=True)

    status = models.CharField(
        max_length=20,
        choices=BookingStatus.choices,
        default=BookingStatus.REQUESTED,
        db_index=True,
    )
    seats_requested = models.PositiveIntegerField()

    # Pricing snapshot
    price_per_seat = models.DecimalField(max_digits=10, decimal_places=2)
    subtotal = models.DecimalField(max_digits=10, decimal_places=2)
    commission_type = models.CharField(max_length=10)
    commission_value = models.DecimalField(max_digits=10, decimal_places=2)
    commission_amount = models.DecimalField(max_digits=10, decimal_places=2)
    total_amount = models.DecimalField(max_digits=10, decimal_places=2)

    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices)

    # Timestamps
    hold_expires_at = models.DateTimeField(null=True, blank=True, db_index=True)
    accepted_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    cancel_reason = models.TextField(null=True, blank=True)

    class Meta:
        db_table = 'bookings'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'hold_expires_at'], name='booking_hold_sweep_idx'),
        ]

    def __str__(self):
        return f"Booking #{self.id} - ride {self.ride_id} - {self.status}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def driver_payout(self):
        return self.subtotal - self.commission_amount

    def is_hold_expired(self, now=None) -> bool:
        now = now or timezone.now()
        return (
            self.status in HOLD_STATUSES
            and self.hold_expires_at is not None
            and self.hold_expires_at < now
        )

    def can_be_cancelled(self, policy, now=None) -> bool:
        """Cancellation guard evaluated before the cancel event is fired."""
        if self.status in NON_CANCELLABLE_STATUSES:
            return False

        if not policy.allow_cancellation:
            return False

        now = now or timezone.now()
        if self.ride is not None:
            deadline = now + timedelta(hours=policy.cancellation_deadline_hours)
            if self.ride.departure_at < deadline:
                return False

        return True


class BookingEvent(models.Model):
    """Append-only audit trail of booking transitions."""

    booking = models.ForeignKey(Booking, on_delete=models.PROTECT, related_name='events')
    event = models.CharField(max_length=40)
    # Null means the system performed the action
    performed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    meta = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now, editable=False)

    class Meta:
        db_table = 'booking_events'
        ordering = ['created_at', 'id']

    def __str__(self):
        return f"{self.event} on booking #{self.booking_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Booking events are write-once")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Booking events cannot be deleted")


class Payment(models.Model):
    """Gateway payment reference for a booking; unique per provider reference."""

    STATUS_CHOICES = [
        ('initiated', 'Initiated'),
        ('paid', 'Paid'),
        ('failed', 'Failed'),
        ('refunded', 'Refunded'),
    ]

    booking = models.ForeignKey(Booking, on_delete=models.PROTECT, related_name='payments')
    provider = models.CharField(max_length=20, choices=PaymentMethod.choices)
    provider_ref = models.CharField(max_length=120)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency_code = models.CharField(max_length=3, default='INR')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='initiated')
    meta = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payments'
        constraints = [
            models.UniqueConstraint(
                fields=['provider', 'provider_ref'],
                name='unique_payment_provider_ref'
            )
        ]

    def __str__(self):
        return f"{self.provider}:{self.provider_ref} ({self.status})"
