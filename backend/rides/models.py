from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class RideStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    PUBLISHED = 'published', 'Published'
    CANCELLED = 'cancelled', 'Cancelled'
    COMPLETED = 'completed', 'Completed'


class Ride(models.Model):
    """A driver-published offer of seats on a trip"""

    # Foreign keys
    driver_profile = models.ForeignKey(
        'drivers.DriverProfile',
        on_delete=models.CASCADE,
        related_name='rides'
    )
    city_id = models.PositiveIntegerField(null=True, blank=True, db_index=True)

    status = models.CharField(max_length=20, choices=RideStatus.choices, default=RideStatus.DRAFT)

    # Route
    origin_name = models.CharField(max_length=255)
    destination_name = models.CharField(max_length=255)
    departure_at = models.DateTimeField(db_index=True)

    # Pricing
    price_per_seat = models.DecimalField(max_digits=10, decimal_places=2)
    currency_code = models.CharField(max_length=3, default='INR')

    # Seat inventory. seats_available is only written by services.inventory
    seats_total = models.PositiveIntegerField()
    seats_available = models.PositiveIntegerField()

    allow_instant_booking = models.BooleanField(default=False)

    # Timestamps
    published_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    cancellation_reason = models.TextField(null=True, blank=True)

    class Meta:
        db_table = 'rides'
        ordering = ['departure_at']
        constraints = [
            models.CheckConstraint(
                condition=Q(seats_total__gte=1),
                name='ride_seats_total_positive',
            ),
            models.CheckConstraint(
                condition=Q(seats_available__gte=0) & Q(seats_available__lte=F('seats_total')),
                name='ride_seats_available_within_total',
            ),
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # __dict__ lookup so deferred loads do not trigger a query
        self._loaded_seats_total = self.__dict__.get('seats_total') if self.pk else None

    def __str__(self):
        return f"Ride #{self.id} {self.origin_name} -> {self.destination_name} ({self.status})"

    def save(self, *args, **kwargs):
        update_fields = kwargs.get('update_fields')
        touches_total = update_fields is None or 'seats_total' in update_fields
        if (
            touches_total
            and self.pk
            and self.status != RideStatus.DRAFT
            and self._loaded_seats_total is not None
            and self.seats_total != self._loaded_seats_total
        ):
            raise ValueError("seats_total cannot change once a ride is published")
        super().save(*args, **kwargs)
        self._loaded_seats_total = self.seats_total

    def refresh_from_db(self, *args, **kwargs):
        super().refresh_from_db(*args, **kwargs)
        self._loaded_seats_total = self.seats_total

    @property
    def is_published(self) -> bool:
        return self.status == RideStatus.PUBLISHED

    @property
    def is_upcoming(self) -> bool:
        return self.departure_at > timezone.now()
